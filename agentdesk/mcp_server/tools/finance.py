"""
Finance tools: accounts, categories, transactions and budgets.

Transactions have no workspace column of their own; they are scoped
through their account. Amounts are signed: income is positive, expenses
negative.
"""

import calendar
from datetime import date, timedelta
from typing import Any

from sqlalchemy import func, or_, select

from agentdesk.infrastructure.adapters.secondary.persistence.models import (
    Account,
    Budget,
    Category,
    Transaction,
)
from agentdesk.mcp_server.context import ToolInvocation
from agentdesk.mcp_server.registry import ToolDefinition, workspace_schema
from agentdesk.mcp_server.results import AccessDeniedError, NotFoundError, ValidationError
from agentdesk.mcp_server.tools.common import (
    DATE_RANGE_PROPERTIES,
    PAGINATION_PROPERTIES,
    date_range_label,
    id_property,
    nullable,
    page_bounds,
    parse_date,
)

ACCOUNT_TYPES = ["checking", "savings", "credit", "investment", "cash", "loan", "other"]
ACCOUNT_GROUPINGS = ["type", "institution"]
CATEGORY_TYPES = ["income", "expense"]
BUDGET_PERIODS = ["weekly", "biweekly", "monthly", "yearly"]

PERIOD_DAYS = {"weekly": 7, "biweekly": 14}


def _check_type(value: Any, allowed: list[str]) -> str:
    if value not in allowed:
        raise ValidationError(f"type must be one of: {', '.join(allowed)}")
    return value


def _positive_amount(value: Any) -> float:
    try:
        amount = float(value)
    except (TypeError, ValueError) as e:
        raise ValidationError("amount must be a number") from e
    if amount <= 0:
        raise ValidationError("amount must be greater than 0")
    return amount


# === Accounts ===


async def _get_account(inv: ToolInvocation, account_id: str) -> Account:
    account = await inv.session.scalar(
        select(Account).where(Account.id == account_id, Account.workspace_id == inv.workspace_id)
    )
    if account is None:
        raise NotFoundError("Account not found")
    return account


async def account_list(inv: ToolInvocation) -> dict[str, Any]:
    query = select(Account).where(Account.workspace_id == inv.workspace_id)
    if inv.get("type"):
        query = query.where(Account.type == inv.get("type"))
    if inv.get("is_active") is not None:
        query = query.where(Account.is_active == bool(inv.get("is_active")))
    accounts = (await inv.session.scalars(query.order_by(Account.created_at))).all()
    return {"accounts": [a.to_dict() for a in accounts], "count": len(accounts)}


async def account_get(inv: ToolInvocation) -> dict[str, Any]:
    account = await _get_account(inv, inv.require("account_id"))
    return account.to_dict()


async def account_create(inv: ToolInvocation) -> dict[str, Any]:
    account = Account(
        workspace_id=inv.workspace_id,
        name=inv.require("name"),
        type=_check_type(inv.require("type"), ACCOUNT_TYPES),
        balance=float(inv.get("balance", 0)),
        institution=inv.get("institution"),
        currency=inv.get("currency", "USD"),
        is_active=bool(inv.get("is_active", True)),
    )
    inv.session.add(account)
    await inv.session.flush()
    return {"message": "Account created successfully", "account": account.to_dict()}


async def account_update(inv: ToolInvocation) -> dict[str, Any]:
    account = await _get_account(inv, inv.require("account_id"))
    values = inv.updates("name", "type", "institution", "is_active", clearable={"institution"})
    if "type" in values:
        _check_type(values["type"], ACCOUNT_TYPES)
    for key, value in values.items():
        setattr(account, key, value)
    await inv.session.flush()
    return {"message": "Account updated successfully", "account": account.to_dict()}


async def account_delete(inv: ToolInvocation) -> dict[str, Any]:
    account = await _get_account(inv, inv.require("account_id"))
    await inv.session.delete(account)
    return {"message": "Account deleted successfully", "account_id": account.id}


async def account_get_totals(inv: ToolInvocation) -> dict[str, Any]:
    """Balance total over active accounts, optionally grouped by type or institution."""
    group_by = inv.get("group_by")
    if group_by is not None and group_by not in ACCOUNT_GROUPINGS:
        raise ValidationError(f"group_by must be one of: {', '.join(ACCOUNT_GROUPINGS)}")

    accounts = (
        await inv.session.scalars(
            select(Account).where(
                Account.workspace_id == inv.workspace_id, Account.is_active.is_(True)
            )
        )
    ).all()
    totals: dict[str, Any] = {
        "total_balance": round(sum(float(a.balance or 0) for a in accounts), 2),
        "account_count": len(accounts),
    }
    if group_by is None:
        return totals

    groups: dict[str, dict[str, Any]] = {}
    for account in accounts:
        group = groups.setdefault(getattr(account, group_by) or "Unknown", {"total": 0.0, "count": 0})
        group["total"] = round(group["total"] + float(account.balance or 0), 2)
        group["count"] += 1
    return {**totals, "grouped_by": group_by, "groups": groups}


# === Categories ===


async def _get_visible_category(inv: ToolInvocation, category_id: str) -> Category:
    category = await inv.session.get(Category, category_id)
    if category is None or not (category.is_system or category.workspace_id == inv.workspace_id):
        raise NotFoundError("Category not found")
    return category


async def _get_editable_category(inv: ToolInvocation, action: str) -> Category:
    category = await inv.session.get(Category, inv.require("category_id"))
    if category is None:
        raise NotFoundError("Category not found")
    if category.is_system:
        raise AccessDeniedError(f"Cannot {action} system categories")
    if category.workspace_id != inv.workspace_id:
        raise NotFoundError("Category not found in this workspace")
    return category


def _visible_categories(inv: ToolInvocation, include_system: bool = True):
    if include_system:
        return select(Category).where(
            or_(Category.is_system.is_(True), Category.workspace_id == inv.workspace_id)
        )
    return select(Category).where(Category.workspace_id == inv.workspace_id)


async def category_list(inv: ToolInvocation) -> dict[str, Any]:
    query = _visible_categories(inv, bool(inv.get("include_system", True)))
    if inv.get("type"):
        query = query.where(Category.type == inv.get("type"))
    categories = (await inv.session.scalars(query.order_by(Category.type, Category.name))).all()
    return {"categories": [c.to_dict() for c in categories], "count": len(categories)}


async def category_get(inv: ToolInvocation) -> dict[str, Any]:
    category = await _get_visible_category(inv, inv.require("category_id"))
    return category.to_dict()


async def category_create(inv: ToolInvocation) -> dict[str, Any]:
    category = Category(
        workspace_id=inv.workspace_id,
        name=inv.require("name"),
        type=_check_type(inv.require("type"), CATEGORY_TYPES),
        icon=inv.get("icon"),
        color=inv.get("color"),
        is_system=False,
    )
    inv.session.add(category)
    await inv.session.flush()
    return {"message": "Category created successfully", "category": category.to_dict()}


async def category_update(inv: ToolInvocation) -> dict[str, Any]:
    category = await _get_editable_category(inv, "modify")
    values = inv.updates("name", "type", "icon", "color", clearable={"icon", "color"})
    if "type" in values:
        _check_type(values["type"], CATEGORY_TYPES)
    for key, value in values.items():
        setattr(category, key, value)
    await inv.session.flush()
    return {"message": "Category updated successfully", "category": category.to_dict()}


async def category_delete(inv: ToolInvocation) -> dict[str, Any]:
    category = await _get_editable_category(inv, "delete")
    await inv.session.delete(category)
    return {"message": "Category deleted successfully", "category_id": category.id}


def _workspace_transactions(inv: ToolInvocation):
    """Select over transactions joined to the workspace's accounts."""
    return (
        select(Transaction)
        .join(Account, Transaction.account_id == Account.id)
        .where(Account.workspace_id == inv.workspace_id)
    )


def _in_range(query, start: date | None, end: date | None):
    if start:
        query = query.where(Transaction.date >= start)
    if end:
        query = query.where(Transaction.date <= end)
    return query


async def category_get_spending(inv: ToolInvocation) -> dict[str, Any]:
    category = await _get_visible_category(inv, inv.require("category_id"))
    start = parse_date(inv.get("start_date"), "start_date")
    end = parse_date(inv.get("end_date"), "end_date")

    query = _in_range(
        _workspace_transactions(inv).where(Transaction.category_id == category.id), start, end
    )
    transactions = (await inv.session.scalars(query)).all()
    return {
        "category_id": category.id,
        "category_name": category.name,
        "category_type": category.type,
        "total": round(sum(abs(t.amount) for t in transactions), 2),
        "transaction_count": len(transactions),
        "date_range": date_range_label(start, end),
    }


async def category_list_with_totals(inv: ToolInvocation) -> dict[str, Any]:
    start = parse_date(inv.get("start_date"), "start_date")
    end = parse_date(inv.get("end_date"), "end_date")

    query = _visible_categories(inv)
    if inv.get("type"):
        query = query.where(Category.type == inv.get("type"))
    categories = (await inv.session.scalars(query)).all()

    totals_query = _in_range(
        select(
            Transaction.category_id,
            func.sum(func.abs(Transaction.amount)),
            func.count(Transaction.id),
        )
        .join(Account, Transaction.account_id == Account.id)
        .where(Account.workspace_id == inv.workspace_id, Transaction.category_id.is_not(None))
        .group_by(Transaction.category_id),
        start,
        end,
    )
    totals = {row[0]: (float(row[1] or 0), int(row[2])) for row in await inv.session.execute(totals_query)}

    rows = []
    for category in categories:
        total, count = totals.get(category.id, (0.0, 0))
        rows.append({**category.to_dict(), "total": round(total, 2), "transaction_count": count})
    rows.sort(key=lambda row: row["total"], reverse=True)
    return {"categories": rows, "count": len(rows), "date_range": date_range_label(start, end)}


# === Transactions ===


async def _get_transaction(inv: ToolInvocation, transaction_id: str) -> Transaction:
    transaction = await inv.session.scalar(
        _workspace_transactions(inv).where(Transaction.id == transaction_id)
    )
    if transaction is None:
        raise NotFoundError("Transaction not found")
    return transaction


async def transaction_list(inv: ToolInvocation) -> dict[str, Any]:
    limit, offset = page_bounds(inv.arguments)
    query = _workspace_transactions(inv)
    if inv.get("account_id"):
        query = query.where(Transaction.account_id == inv.get("account_id"))
    if inv.get("category_id"):
        query = query.where(Transaction.category_id == inv.get("category_id"))
    if inv.get("type") == "income":
        query = query.where(Transaction.amount > 0)
    elif inv.get("type") == "expense":
        query = query.where(Transaction.amount < 0)
    query = _in_range(
        query,
        parse_date(inv.get("start_date"), "start_date"),
        parse_date(inv.get("end_date"), "end_date"),
    )
    query = (
        query.order_by(Transaction.date.desc(), Transaction.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    transactions = (await inv.session.scalars(query)).all()
    return {"transactions": [t.to_dict() for t in transactions], "count": len(transactions)}


async def transaction_get(inv: ToolInvocation) -> dict[str, Any]:
    transaction = await _get_transaction(inv, inv.require("transaction_id"))
    return transaction.to_dict()


async def transaction_create(inv: ToolInvocation) -> dict[str, Any]:
    account = await _get_account(inv, inv.require("account_id"))
    category_id = inv.get("category_id")
    if category_id:
        await _get_visible_category(inv, category_id)

    transaction = Transaction(
        account_id=account.id,
        category_id=category_id,
        amount=float(inv.require("amount")),
        date=parse_date(inv.get("date"), "date") or date.today(),
        description=inv.get("description"),
        notes=inv.get("notes"),
    )
    inv.session.add(transaction)
    await inv.session.flush()
    return {"message": "Transaction created successfully", "transaction": transaction.to_dict()}


async def transaction_update(inv: ToolInvocation) -> dict[str, Any]:
    transaction = await _get_transaction(inv, inv.require("transaction_id"))
    values = inv.updates(
        "account_id",
        "category_id",
        "amount",
        "date",
        "description",
        "notes",
        clearable={"category_id", "description", "notes"},
    )
    if "account_id" in values:
        await _get_account(inv, values["account_id"])
    if values.get("category_id"):
        await _get_visible_category(inv, values["category_id"])
    if "date" in values:
        values["date"] = parse_date(values["date"], "date")
    if "amount" in values:
        values["amount"] = float(values["amount"])
    for key, value in values.items():
        setattr(transaction, key, value)
    await inv.session.flush()
    return {"message": "Transaction updated successfully", "transaction": transaction.to_dict()}


async def transaction_delete(inv: ToolInvocation) -> dict[str, Any]:
    transaction = await _get_transaction(inv, inv.require("transaction_id"))
    await inv.session.delete(transaction)
    return {"message": "Transaction deleted successfully", "transaction_id": transaction.id}


async def transaction_search(inv: ToolInvocation) -> dict[str, Any]:
    query_text = str(inv.require("query")).strip()
    if not query_text:
        raise ValidationError("query cannot be empty")
    limit, _ = page_bounds(inv.arguments, default_limit=50)
    transactions = (
        await inv.session.scalars(
            _workspace_transactions(inv)
            .where(Transaction.description.ilike(f"%{query_text}%"))
            .order_by(Transaction.date.desc(), Transaction.created_at.desc())
            .limit(limit)
        )
    ).all()
    return {
        "transactions": [t.to_dict() for t in transactions],
        "count": len(transactions),
        "query": query_text,
    }


async def transaction_get_recent(inv: ToolInvocation) -> dict[str, Any]:
    limit, _ = page_bounds(inv.arguments, default_limit=10)
    transactions = (
        await inv.session.scalars(
            _workspace_transactions(inv)
            .order_by(Transaction.date.desc(), Transaction.created_at.desc())
            .limit(limit)
        )
    ).all()
    return {"transactions": [t.to_dict() for t in transactions], "count": len(transactions)}


async def transaction_create_transfer(inv: ToolInvocation) -> dict[str, Any]:
    """Two paired legs: a debit on the source account and a credit on the target."""
    source = await _get_account(inv, inv.require("from_account_id"))
    target = await _get_account(inv, inv.require("to_account_id"))
    if source.id == target.id:
        raise ValidationError("Cannot transfer to the same account")
    amount = _positive_amount(inv.require("amount"))
    when = parse_date(inv.get("date"), "date") or date.today()
    note = inv.get("description")

    outgoing = Transaction(
        account_id=source.id,
        amount=-amount,
        date=when,
        description=f"Transfer to {target.name}" + (f": {note}" if note else ""),
        is_transfer=True,
    )
    incoming = Transaction(
        account_id=target.id,
        amount=amount,
        date=when,
        description=f"Transfer from {source.name}" + (f": {note}" if note else ""),
        is_transfer=True,
    )
    inv.session.add_all([outgoing, incoming])
    await inv.session.flush()
    outgoing.transfer_pair_id = incoming.id
    incoming.transfer_pair_id = outgoing.id
    await inv.session.flush()
    return {
        "message": "Transfer created successfully",
        "from_transaction": outgoing.to_dict(),
        "to_transaction": incoming.to_dict(),
    }


# === Budgets ===


def _shift_months(anchor: date, months: int) -> date:
    """``anchor`` moved by ``months``, clamping the day to the month's length."""
    month_index = anchor.year * 12 + anchor.month - 1 + months
    year, month = divmod(month_index, 12)
    day = min(anchor.day, calendar.monthrange(year, month + 1)[1])
    return date(year, month + 1, day)


def budget_period(start_date: date, period: str, today: date | None = None) -> tuple[date, date]:
    """
    The budget period containing ``today``, as ``[start, end)``.

    Weekly and biweekly periods step from ``start_date``; monthly and
    yearly periods are anchored on its day of month. Before
    ``start_date`` the first period is returned.
    """
    today = today or date.today()
    if today < start_date:
        today = start_date

    if period in PERIOD_DAYS:
        step = PERIOD_DAYS[period]
        offset = (today - start_date).days // step * step
        period_start = start_date + timedelta(days=offset)
        return period_start, period_start + timedelta(days=step)

    months = 12 if period == "yearly" else 1
    elapsed = (today.year - start_date.year) * 12 + today.month - start_date.month
    count = elapsed // months
    period_start = _shift_months(start_date, count * months)
    if period_start > today:
        count -= 1
        period_start = _shift_months(start_date, count * months)
    return period_start, _shift_months(start_date, (count + 1) * months)


def budget_status(percent_used: float) -> str:
    if percent_used >= 100:
        return "over_budget"
    if percent_used >= 90:
        return "critical"
    if percent_used >= 75:
        return "warning"
    return "on_track"


async def _budget_spending(inv: ToolInvocation, budget: Budget) -> dict[str, Any]:
    period_start, period_end = budget_period(budget.start_date, budget.period)
    spent = 0.0
    if budget.category_id:
        total = await inv.session.scalar(
            select(func.sum(Transaction.amount))
            .join(Account, Transaction.account_id == Account.id)
            .where(
                Account.workspace_id == inv.workspace_id,
                Transaction.category_id == budget.category_id,
                Transaction.amount < 0,
                Transaction.date >= period_start,
                Transaction.date < period_end,
            )
        )
        spent = abs(float(total or 0))

    amount = float(budget.amount)
    return {
        "spent": round(spent, 2),
        "remaining": round(max(0.0, amount - spent), 2),
        "percentUsed": spent / amount * 100 if amount else 0.0,
        "period_start": period_start.isoformat(),
        "period_end": period_end.isoformat(),
    }


async def _get_budget(inv: ToolInvocation) -> Budget:
    budget = await inv.session.scalar(
        select(Budget).where(
            Budget.id == inv.require("budget_id"), Budget.workspace_id == inv.workspace_id
        )
    )
    if budget is None:
        raise NotFoundError("Budget not found")
    return budget


def _check_period(period: Any) -> None:
    if period not in BUDGET_PERIODS:
        raise ValidationError(f"period must be one of: {', '.join(BUDGET_PERIODS)}")


async def budget_list(inv: ToolInvocation) -> dict[str, Any]:
    query = select(Budget).where(Budget.workspace_id == inv.workspace_id)
    if inv.get("is_active") is not None:
        query = query.where(Budget.is_active == bool(inv.get("is_active")))
    budgets = (await inv.session.scalars(query.order_by(Budget.created_at.desc()))).all()
    return {"budgets": [b.to_dict() for b in budgets], "count": len(budgets)}


async def budget_get(inv: ToolInvocation) -> dict[str, Any]:
    budget = await _get_budget(inv)
    return {"budget": budget.to_dict(), "spending": await _budget_spending(inv, budget)}


async def budget_create(inv: ToolInvocation) -> dict[str, Any]:
    category_id = inv.require("category_id")
    await _get_visible_category(inv, category_id)
    period = inv.get("period", "monthly")
    _check_period(period)

    budget = Budget(
        workspace_id=inv.workspace_id,
        category_id=category_id,
        amount=_positive_amount(inv.require("amount")),
        period=period,
        start_date=parse_date(inv.get("start_date"), "start_date") or date.today(),
        rollover=bool(inv.get("rollover", False)),
        is_active=True,
    )
    inv.session.add(budget)
    await inv.session.flush()
    return {"message": "Budget created successfully", "budget": budget.to_dict()}


async def budget_update(inv: ToolInvocation) -> dict[str, Any]:
    budget = await _get_budget(inv)
    values = inv.updates("amount", "period", "rollover", "is_active")
    if "period" in values:
        _check_period(values["period"])
    if "amount" in values:
        values["amount"] = _positive_amount(values["amount"])
    for key, value in values.items():
        setattr(budget, key, value)
    await inv.session.flush()
    return {"message": "Budget updated successfully", "budget": budget.to_dict()}


async def budget_delete(inv: ToolInvocation) -> dict[str, Any]:
    budget = await _get_budget(inv)
    await inv.session.delete(budget)
    return {"message": "Budget deleted successfully", "budget_id": budget.id}


async def budget_get_status(inv: ToolInvocation) -> dict[str, Any]:
    budget = await _get_budget(inv)
    spending = await _budget_spending(inv, budget)
    return {
        "budget_id": budget.id,
        "status": budget_status(spending["percentUsed"]),
        "percent_used": round(spending["percentUsed"], 2),
        "amount": float(budget.amount),
        "spent": spending["spent"],
        "remaining": spending["remaining"],
        "period_start": spending["period_start"],
        "period_end": spending["period_end"],
    }


async def _budgets_with_spending(inv: ToolInvocation) -> list[dict[str, Any]]:
    budgets = (
        await inv.session.scalars(
            select(Budget)
            .where(Budget.workspace_id == inv.workspace_id, Budget.is_active.is_(True))
            .order_by(Budget.created_at.desc())
        )
    ).all()
    rows = []
    for budget in budgets:
        spending = await _budget_spending(inv, budget)
        rows.append(
            {
                **budget.to_dict(),
                "spending": spending,
                "status": budget_status(spending["percentUsed"]),
            }
        )
    return rows


async def budget_list_with_spending(inv: ToolInvocation) -> dict[str, Any]:
    budgets = await _budgets_with_spending(inv)
    return {"budgets": budgets, "count": len(budgets)}


async def budget_list_over_limit(inv: ToolInvocation) -> dict[str, Any]:
    budgets = [b for b in await _budgets_with_spending(inv) if b["spending"]["percentUsed"] >= 100]
    return {"budgets": budgets, "count": len(budgets)}


ACCOUNT_ID ={"account_id": id_property("Account ID")}
CATEGORY_ID = {"category_id": id_property("Category ID")}
TRANSACTION_ID = {"transaction_id": id_property("Transaction ID")}
BUDGET_ID = {"budget_id": id_property("Budget ID")}

ACCOUNT_FIELDS = {
    "name": {"type": "string", "description": "Account name"},
    "type": {"type": "string", "enum": ACCOUNT_TYPES},
    "institution": nullable({"type": "string", "description": "Bank or institution"}),
    "is_active": {"type": "boolean"},
}

CATEGORY_FIELDS = {
    "name": {"type": "string", "description": "Category name"},
    "type": {"type": "string", "enum": CATEGORY_TYPES},
    "icon": nullable({"type": "string"}),
    "color": nullable({"type": "string"}),
}

TRANSACTION_FIELDS = {
    **ACCOUNT_ID,
    "category_id": nullable(id_property("Category ID")),
    "amount": {"type": "number", "description": "Positive for income, negative for expenses"},
    "date": {"type": "string", "description": "Transaction date (YYYY-MM-DD)"},
    "description": nullable({"type": "string"}),
    "notes": nullable({"type": "string"}),
}

BUDGET_FIELDS = {
    "amount": {
        "type": "number",
        "exclusiveMinimum": 0,
        "description": "Budgeted amount per period",
    },
    "period": {"type": "string", "enum": BUDGET_PERIODS},
    "rollover": {"type": "boolean"},
    "is_active": {"type": "boolean"},
}


FINANCE_TOOLS: list[ToolDefinition] = [
    ToolDefinition(
        "account_list",
        "List financial accounts in the workspace",
        workspace_schema(
            {"type": {"type": "string", "enum": ACCOUNT_TYPES}, "is_active": {"type": "boolean"}}
        ),
        account_list,
    ),
    ToolDefinition("account_get", "Get an account", workspace_schema(ACCOUNT_ID, ["account_id"]), account_get),
    ToolDefinition(
        "account_create",
        "Create a financial account",
        workspace_schema(
            {
                **ACCOUNT_FIELDS,
                "balance": {"type": "number", "description": "Opening balance"},
                "currency": {"type": "string", "description": "ISO currency code, default USD"},
            },
            ["name", "type"],
        ),
        account_create,
    ),
    ToolDefinition(
        "account_update",
        "Update an account",
        workspace_schema({**ACCOUNT_ID, **ACCOUNT_FIELDS}, ["account_id"]),
        account_update,
    ),
    ToolDefinition(
        "account_delete", "Delete an account", workspace_schema(ACCOUNT_ID, ["account_id"]), account_delete
    ),
    ToolDefinition(
        "account_get_totals",
        "Total balance across active accounts, optionally grouped by type or institution",
        workspace_schema({"group_by": {"type": "string", "enum": ACCOUNT_GROUPINGS}}),
        account_get_totals,
    ),
    ToolDefinition(
        "category_list",
        "List transaction categories, including system categories by default",
        workspace_schema(
            {
                "type": {"type": "string", "enum": CATEGORY_TYPES},
                "include_system": {"type": "boolean", "description": "Include system categories"},
            }
        ),
        category_list,
    ),
    ToolDefinition(
        "category_get", "Get a category", workspace_schema(CATEGORY_ID, ["category_id"]), category_get
    ),
    ToolDefinition(
        "category_create",
        "Create a workspace category",
        workspace_schema(CATEGORY_FIELDS, ["name", "type"]),
        category_create,
    ),
    ToolDefinition(
        "category_update",
        "Update a workspace category (system categories cannot be modified)",
        workspace_schema({**CATEGORY_ID, **CATEGORY_FIELDS}, ["category_id"]),
        category_update,
    ),
    ToolDefinition(
        "category_delete",
        "Delete a workspace category (system categories cannot be deleted)",
        workspace_schema(CATEGORY_ID, ["category_id"]),
        category_delete,
    ),
    ToolDefinition(
        "category_get_spending",
        "Total spending in a category over an optional date range",
        workspace_schema({**CATEGORY_ID, **DATE_RANGE_PROPERTIES}, ["category_id"]),
        category_get_spending,
    ),
    ToolDefinition(
        "category_list_with_totals",
        "List categories with transaction totals, largest first",
        workspace_schema(
            {"type": {"type": "string", "enum": CATEGORY_TYPES}, **DATE_RANGE_PROPERTIES}
        ),
        category_list_with_totals,
    ),
    ToolDefinition(
        "transaction_list",
        "List transactions, newest first",
        workspace_schema(
            {
                **ACCOUNT_ID,
                **CATEGORY_ID,
                "type": {"type": "string", "enum": CATEGORY_TYPES},
                **DATE_RANGE_PROPERTIES,
                **PAGINATION_PROPERTIES,
            }
        ),
        transaction_list,
    ),
    ToolDefinition(
        "transaction_get",
        "Get a transaction",
        workspace_schema(TRANSACTION_ID, ["transaction_id"]),
        transaction_get,
    ),
    ToolDefinition(
        "transaction_create",
        "Record a transaction on an account",
        workspace_schema(TRANSACTION_FIELDS, ["account_id", "amount"]),
        transaction_create,
    ),
    ToolDefinition(
        "transaction_update",
        "Update a transaction",
        workspace_schema({**TRANSACTION_ID, **TRANSACTION_FIELDS}, ["transaction_id"]),
        transaction_update,
    ),
    ToolDefinition(
        "transaction_delete",
        "Delete a transaction",
        workspace_schema(TRANSACTION_ID, ["transaction_id"]),
        transaction_delete,
    ),
    ToolDefinition(
        "transaction_search",
        "Search transactions by description",
        workspace_schema(
            {
                "query": {"type": "string", "description": "Text to match in the description"},
                "limit": {"type": "integer", "minimum": 1, "maximum": 100, "default": 50},
            },
            ["query"],
        ),
        transaction_search,
    ),
    ToolDefinition(
        "transaction_get_recent",
        "Get the most recent transactions",
        workspace_schema({"limit": {"type": "integer", "minimum": 1, "maximum": 100, "default": 10}}),
        transaction_get_recent,
    ),
    ToolDefinition(
        "transaction_create_transfer",
        "Move money between two accounts as a pair of linked transactions",
        workspace_schema(
            {
                "from_account_id": id_property("Account the money leaves"),
                "to_account_id": id_property("Account the money arrives in"),
                "amount": {"type": "number", "exclusiveMinimum": 0, "description": "Transfer amount (always positive)"},
                "date": {"type": "string", "description": "Transfer date (YYYY-MM-DD), default today"},
                "description": {"type": "string", "description": "Transfer note"},
            },
            ["from_account_id", "to_account_id", "amount"],
        ),
        transaction_create_transfer,
    ),
    ToolDefinition(
        "budget_list",
        "List budgets",
        workspace_schema({"is_active": {"type": "boolean"}}),
        budget_list,
    ),
    ToolDefinition(
        "budget_get",
        "Get a budget with its spending in the current period",
        workspace_schema(BUDGET_ID, ["budget_id"]),
        budget_get,
    ),
    ToolDefinition(
        "budget_create",
        "Create a budget for a category",
        workspace_schema(
            {
                **CATEGORY_ID,
                **BUDGET_FIELDS,
                "start_date": {"type": "string", "description": "First period start (YYYY-MM-DD)"},
            },
            ["category_id", "amount"],
        ),
        budget_create,
    ),
    ToolDefinition(
        "budget_update",
        "Update a budget",
        workspace_schema({**BUDGET_ID, **BUDGET_FIELDS}, ["budget_id"]),
        budget_update,
    ),
    ToolDefinition(
        "budget_delete", "Delete a budget", workspace_schema(BUDGET_ID, ["budget_id"]), budget_delete
    ),
    ToolDefinition(
        "budget_get_status",
        "Budget health for the current period: on_track, warning, critical or over_budget",
        workspace_schema(BUDGET_ID, ["budget_id"]),
        budget_get_status,
    ),
    ToolDefinition(
        "budget_list_with_spending",
        "List active budgets with their current-period spending and status",
        workspace_schema({}),
        budget_list_with_spending,
    ),
    ToolDefinition(
        "budget_list_over_limit",
        "List active budgets that have reached or exceeded their amount this period",
        workspace_schema({}),
        budget_list_over_limit,
    ),
]
