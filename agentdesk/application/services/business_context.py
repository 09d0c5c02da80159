"""
Workspace business context.

Stored as JSON on ``workspaces.business_context`` and turned into prompt
instructions that apply to every agent in the workspace.
"""

import json
import logging
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

AutonomyLevel = Literal["conservative", "balanced", "autonomous"]

_AUTONOMY_INSTRUCTIONS: dict[str, str] = {
    "conservative": (
        "Ask the user for confirmation before creating, updating or deleting any data. "
        "Prefer suggesting an action over taking it."
    ),
    "balanced": (
        "Handle routine reads and small updates on your own. "
        "Ask before deleting data or making changes with financial impact."
    ),
    "autonomous": (
        "Act on your own judgement and carry tasks through to completion. "
        "Report what you changed afterwards."
    ),
}


class BusinessContext(BaseModel):
    """Validated shape of ``workspaces.business_context``."""

    model_config = ConfigDict(extra="ignore")

    company_name: str | None = None
    industry: str | None = None
    description: str | None = None
    autonomy_level: AutonomyLevel | None = None
    approval_required_for: list[str] = Field(default_factory=list)
    communication_style: str | None = None


def parse_business_context(raw: Any) -> BusinessContext | None:
    """Accepts a dict or a JSON string; anything unusable yields ``None``."""
    if not raw:
        return None
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Ignoring business context that is not valid JSON")
            return None
    if not isinstance(raw, dict):
        return None
    try:
        return BusinessContext.model_validate(raw)
    except ValidationError as e:
        logger.warning("Ignoring invalid business context: %s", e)
        return None


def build_business_context_instructions(context: BusinessContext) -> str:
    """Render the ``# Business Context`` section, or ``""`` when nothing is set."""
    about: list[str] = []
    if context.company_name:
        about.append(f"- Company: {context.company_name}")
    if context.industry:
        about.append(f"- Industry: {context.industry}")
    if context.description:
        about.append(f"- About: {context.description}")

    sections: list[str] = []
    if about:
        sections.append("\n".join(about))
    if context.autonomy_level:
        sections.append(
            f"## Autonomy Level: {context.autonomy_level.capitalize()}\n\n"
            f"{_AUTONOMY_INSTRUCTIONS[context.autonomy_level]}"
        )
    if context.approval_required_for:
        items = "\n".join(f"- {item}" for item in context.approval_required_for)
        sections.append(f"## Always Ask Before\n\n{items}")
    if context.communication_style:
        sections.append(f"## Communication Style\n\n{context.communication_style}")

    if not sections:
        return ""
    return "# Business Context\n\n" + "\n\n".join(sections)
