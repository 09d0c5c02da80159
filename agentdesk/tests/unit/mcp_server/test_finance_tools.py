"""Unit tests for the finance tools."""

from datetime import date

import pytest

from agentdesk.infrastructure.adapters.secondary.persistence.models import (
    Account,
    Budget,
    Category,
    Transaction,
)
from agentdesk.mcp_server.results import ErrorCode
from agentdesk.mcp_server.tools.finance import budget_period, budget_status
from agentdesk.tests.conftest import OTHER_WORKSPACE_ID, TEST_WORKSPACE_ID


@pytest.fixture
async def ledger(test_db, test_workspace):
    """A checking account with groceries spending and a salary deposit."""
    today = date.today()
    test_db.add_all(
        [
            Account(id="acc-1", workspace_id=TEST_WORKSPACE_ID, name="Checking", type="checking"),
            Account(id="acc-other", workspace_id=OTHER_WORKSPACE_ID, name="Theirs", type="cash"),
            Category(id="cat-system", name="Salary", type="income", is_system=True),
            Category(id="cat-food", workspace_id=TEST_WORKSPACE_ID, name="Groceries", type="expense"),
            Category(id="cat-other", workspace_id=OTHER_WORKSPACE_ID, name="Hidden", type="expense"),
        ]
    )
    await test_db.flush()
    test_db.add_all(
        [
            Transaction(id="tx-1", account_id="acc-1", category_id="cat-food", amount=-50, date=today),
            Transaction(id="tx-2", account_id="acc-1", category_id="cat-food", amount=-30, date=today),
            Transaction(id="tx-3", account_id="acc-1", category_id="cat-system", amount=2000, date=today),
            Transaction(id="tx-other", account_id="acc-other", amount=-10, date=today),
            Budget(
                id="budget-1",
                workspace_id=TEST_WORKSPACE_ID,
                category_id="cat-food",
                amount=100,
                period="monthly",
                start_date=today,
            ),
        ]
    )
    await test_db.commit()


@pytest.mark.unit
class TestBudgetPeriod:
    def test_weekly(self):
        assert budget_period(date(2024, 1, 1), "weekly", date(2024, 1, 10)) == (
            date(2024, 1, 8),
            date(2024, 1, 15),
        )

    def test_biweekly(self):
        assert budget_period(date(2024, 1, 1), "biweekly", date(2024, 1, 15)) == (
            date(2024, 1, 15),
            date(2024, 1, 29),
        )

    def test_monthly_clamps_to_short_months(self):
        assert budget_period(date(2024, 1, 31), "monthly", date(2024, 3, 5)) == (
            date(2024, 2, 29),
            date(2024, 3, 31),
        )

    def test_yearly_before_anniversary(self):
        assert budget_period(date(2023, 6, 15), "yearly", date(2024, 6, 14)) == (
            date(2023, 6, 15),
            date(2024, 6, 15),
        )

    def test_before_start_returns_first_period(self):
        assert budget_period(date(2024, 5, 1), "monthly", date(2024, 1, 1)) == (
            date(2024, 5, 1),
            date(2024, 6, 1),
        )

    @pytest.mark.parametrize(
        "percent,status",
        [(0, "on_track"), (74.9, "on_track"), (75, "warning"), (90, "critical"), (100, "over_budget")],
    )
    def test_status_thresholds(self, percent, status):
        assert budget_status(percent) == status


@pytest.mark.unit
class TestAccounts:
    async def test_list_is_workspace_scoped(self, call_tool, ledger):
        result = await call_tool("account_list")
        assert [a["id"] for a in result.data["accounts"]] == ["acc-1"]

    async def test_create_and_update(self, call_tool, test_workspace):
        created = await call_tool(
            "account_create", {"name": "Savings", "type": "savings", "balance": 250}
        )
        account_id = created.data["account"]["id"]
        assert created.data["account"]["currency"] == "USD"

        updated = await call_tool(
            "account_update", {"account_id": account_id, "institution": "First Bank"}
        )
        assert updated.data["account"]["institution"] == "First Bank"

    async def test_update_without_fields(self, call_tool, ledger):
        result = await call_tool("account_update", {"account_id": "acc-1"})
        assert result.error == "No fields to update"

    async def test_other_workspace_account_is_not_found(self, call_tool, ledger):
        result = await call_tool("account_get", {"account_id": "acc-other"})
        assert result.code == ErrorCode.NOT_FOUND
        assert result.error == "Account not found"

    async def test_invalid_type_on_create_and_update(self, call_tool, ledger):
        created = await call_tool("account_create", {"name": "Vault", "type": "vault"})
        assert created.code == ErrorCode.VALIDATION
        assert created.error.startswith("type must be one of: checking")

        updated = await call_tool("account_update", {"account_id": "acc-1", "type": "vault"})
        assert updated.code == ErrorCode.VALIDATION

    async def test_institution_can_be_cleared(self, call_tool, ledger):
        await call_tool("account_update", {"account_id": "acc-1", "institution": "First Bank"})

        result = await call_tool("account_update", {"account_id": "acc-1", "institution": None})

        assert result.data["account"]["institution"] is None

    async def test_name_cannot_be_cleared(self, call_tool, ledger):
        result = await call_tool("account_update", {"account_id": "acc-1", "name": None})
        assert result.error == "name cannot be cleared"

    async def test_totals(self, call_tool, ledger, test_db):
        test_db.add_all(
            [
                Account(id="acc-2", workspace_id=TEST_WORKSPACE_ID, name="Savings", type="savings", balance=500, institution="First Bank"),
                Account(id="acc-3", workspace_id=TEST_WORKSPACE_ID, name="Wallet", type="cash", balance=40.5),
                Account(id="acc-4", workspace_id=TEST_WORKSPACE_ID, name="Old", type="cash", balance=99, is_active=False),
            ]
        )
        await test_db.commit()

        totals = await call_tool("account_get_totals")
        assert totals.data == {"total_balance": 540.5, "account_count": 3}

        by_institution = await call_tool("account_get_totals", {"group_by": "institution"})
        assert by_institution.data["grouped_by"] == "institution"
        assert by_institution.data["groups"] == {
            "First Bank": {"total": 500, "count": 1},
            "Unknown": {"total": 40.5, "count": 2},
        }

    async def test_totals_rejects_unknown_grouping(self, call_tool, ledger):
        result = await call_tool("account_get_totals", {"group_by": "currency"})
        assert result.error == "group_by must be one of: type, institution"


@pytest.mark.unit
class TestCategories:
    async def test_list_includes_system_categories(self, call_tool, ledger):
        result = await call_tool("category_list")
        assert {c["id"] for c in result.data["categories"]} == {"cat-system", "cat-food"}

        own = await call_tool("category_list", {"include_system": False})
        assert [c["id"] for c in own.data["categories"]] == ["cat-food"]

    async def test_system_categories_are_read_only(self, call_tool, ledger):
        result = await call_tool("category_delete", {"category_id": "cat-system"})
        assert result.code == ErrorCode.ACCESS_DENIED
        assert result.error == "Cannot delete system categories"

    async def test_invalid_type(self, call_tool, ledger):
        result = await call_tool("category_create", {"name": "Misc", "type": "transfer"})
        assert result.code == ErrorCode.VALIDATION

    async def test_invalid_type_on_update(self, call_tool, ledger):
        result = await call_tool("category_update", {"category_id": "cat-food", "type": "transfer"})
        assert result.code == ErrorCode.VALIDATION
        assert result.error == "type must be one of: income, expense"

    async def test_spending_and_totals(self, call_tool, ledger):
        spending = await call_tool("category_get_spending", {"category_id": "cat-food"})
        assert spending.data["total"] == 80
        assert spending.data["transaction_count"] == 2
        assert spending.data["date_range"] == {"start": "all time", "end": "present"}

        totals = await call_tool("category_list_with_totals")
        assert [c["id"] for c in totals.data["categories"]] == ["cat-system", "cat-food"]

    async def test_bad_date(self, call_tool, ledger):
        result = await call_tool(
            "category_get_spending", {"category_id": "cat-food", "start_date": "03/01/2024"}
        )
        assert result.error == "start_date must be a date in YYYY-MM-DD format"


@pytest.mark.unit
class TestTransactions:
    async def test_list_filters_by_sign(self, call_tool, ledger):
        expenses = await call_tool("transaction_list", {"type": "expense"})
        assert {t["id"] for t in expenses.data["transactions"]} == {"tx-1", "tx-2"}

        income = await call_tool("transaction_list", {"type": "income"})
        assert [t["id"] for t in income.data["transactions"]] == ["tx-3"]

    async def test_other_workspace_transaction_is_hidden(self, call_tool, ledger):
        result = await call_tool("transaction_get", {"transaction_id": "tx-other"})
        assert result.error == "Transaction not found"

    async def test_create_defaults_to_today(self, call_tool, ledger):
        result = await call_tool("transaction_create", {"account_id": "acc-1", "amount": "-12.5"})
        assert result.data["transaction"]["amount"] == -12.5
        assert result.data["transaction"]["date"] == date.today().isoformat()

    async def test_cannot_move_to_foreign_account(self, call_tool, ledger):
        result = await call_tool(
            "transaction_update", {"transaction_id": "tx-1", "account_id": "acc-other"}
        )
        assert result.error == "Account not found"

    async def test_category_can_be_cleared(self, call_tool, ledger):
        result = await call_tool("transaction_update", {"transaction_id": "tx-1", "category_id": None})
        assert result.success
        assert result.data["transaction"]["category_id"] is None

    async def test_non_numeric_limit(self, call_tool, ledger):
        result = await call_tool("transaction_list", {"limit": "many"})
        assert result.code == ErrorCode.VALIDATION
        assert result.error == "limit must be an integer"

    async def test_search_matches_description(self, call_tool, ledger):
        await call_tool(
            "transaction_create",
            {"account_id": "acc-1", "amount": -12, "description": "Farmers Market"},
        )
        await call_tool(
            "transaction_create", {"account_id": "acc-1", "amount": -8, "description": "Bakery"}
        )

        result = await call_tool("transaction_search", {"query": "market"})

        assert result.data["count"] == 1
        assert result.data["transactions"][0]["description"] == "Farmers Market"

    async def test_recent_honours_limit(self, call_tool, ledger):
        result = await call_tool("transaction_get_recent", {"limit": 2})
        assert result.data["count"] == 2
        assert "tx-other" not in {t["id"] for t in result.data["transactions"]}

    async def test_transfer_creates_paired_legs(self, call_tool, ledger, test_db):
        test_db.add(Account(id="acc-2", workspace_id=TEST_WORKSPACE_ID, name="Savings", type="savings"))
        await test_db.commit()

        result = await call_tool(
            "transaction_create_transfer",
            {"from_account_id": "acc-1", "to_account_id": "acc-2", "amount": 150, "date": "2024-03-01"},
        )

        outgoing = result.data["from_transaction"]
        incoming = result.data["to_transaction"]
        assert result.data["message"] == "Transfer created successfully"
        assert (outgoing["amount"], incoming["amount"]) == (-150, 150)
        assert outgoing["transfer_pair_id"] == incoming["id"]
        assert incoming["transfer_pair_id"] == outgoing["id"]
        assert outgoing["is_transfer"] and incoming["is_transfer"]
        assert outgoing["description"] == "Transfer to Savings"
        assert incoming["description"] == "Transfer from Checking"
        assert incoming["date"] == "2024-03-01"

    async def test_transfer_rejects_same_or_foreign_account(self, call_tool, ledger):
        same = await call_tool(
            "transaction_create_transfer",
            {"from_account_id": "acc-1", "to_account_id": "acc-1", "amount": 5},
        )
        assert same.error == "Cannot transfer to the same account"

        foreign = await call_tool(
            "transaction_create_transfer",
            {"from_account_id": "acc-1", "to_account_id": "acc-other", "amount": 5},
        )
        assert foreign.error == "Account not found"


@pytest.mark.unit
class TestBudgets:
    async def test_status_for_current_period(self, call_tool, ledger):
        result = await call_tool("budget_get_status", {"budget_id": "budget-1"})
        assert result.data["status"] == "warning"
        assert result.data["percent_used"] == 80
        assert result.data["spent"] == 80
        assert result.data["remaining"] == 20

    async def test_get_includes_spending(self, call_tool, ledger):
        result = await call_tool("budget_get", {"budget_id": "budget-1"})
        assert result.data["spending"]["percentUsed"] == pytest.approx(80)

    async def test_invalid_period(self, call_tool, ledger):
        result = await call_tool(
            "budget_create", {"category_id": "cat-food", "amount": 50, "period": "daily"}
        )
        assert result.code == ErrorCode.VALIDATION

    async def test_budget_for_hidden_category(self, call_tool, ledger):
        result = await call_tool("budget_create", {"category_id": "cat-other", "amount": 50})
        assert result.error == "Category not found"

    async def test_amount_must_be_positive(self, call_tool, ledger):
        created = await call_tool("budget_create", {"category_id": "cat-food", "amount": 0})
        assert created.code == ErrorCode.VALIDATION
        assert created.error == "amount must be greater than 0"

        updated = await call_tool("budget_update", {"budget_id": "budget-1", "amount": -20})
        assert updated.error == "amount must be greater than 0"

    async def test_list_with_spending(self, call_tool, ledger):
        result = await call_tool("budget_list_with_spending")

        assert result.data["count"] == 1
        budget = result.data["budgets"][0]
        assert budget["id"] == "budget-1"
        assert budget["status"] == "warning"
        assert budget["spending"]["spent"] == 80

    async def test_list_over_limit(self, call_tool, ledger):
        assert (await call_tool("budget_list_over_limit")).data["count"] == 0

        await call_tool(
            "transaction_create", {"account_id": "acc-1", "category_id": "cat-food", "amount": -25}
        )

        result = await call_tool("budget_list_over_limit")
        assert [b["id"] for b in result.data["budgets"]] == ["budget-1"]
        assert result.data["budgets"][0]["status"] == "over_budget"
