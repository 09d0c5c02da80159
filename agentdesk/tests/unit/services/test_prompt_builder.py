"""Unit tests for system prompt assembly."""

import pytest

from agentdesk.application.services.prompt_builder import (
    DEFAULT_SYSTEM_PROMPT,
    ERROR_HANDLING_SECTION,
    SECTION_SEPARATOR,
    append_knowledge,
    append_skills,
    apply_rules_to_prompt,
    build_agent_prompt,
    build_chat_prompt,
    build_context_section,
    build_delegated_agent_prompt,
    build_delegated_message,
    build_delegation_section,
    estimate_tokens,
)
from agentdesk.domain.model.auth.session_user import SessionUser
from agentdesk.domain.model.team.team_config import (
    DeployedAgent,
    DeployedDelegation,
    DeployedMind,
    DeployedRule,
)


@pytest.mark.unit
class TestRules:
    def test_no_rules_leaves_prompt_unchanged(self):
        assert apply_rules_to_prompt("Base", []) == "Base"

    def test_rules_grouped_by_type_in_priority_order(self):
        rules = [
            DeployedRule(id="3", rule_type="never", content="Share passwords", priority=1),
            DeployedRule(id="2", rule_type="always", content="Be polite", priority=5),
            DeployedRule(id="1", rule_type="always", content="Use USD", priority=0),
            DeployedRule(
                id="4", rule_type="when", content="Escalate", condition="amount > 1000"
            ),
        ]

        prompt = apply_rules_to_prompt("Base", rules)

        assert prompt == (
            "Base"
            + SECTION_SEPARATOR
            + "# Rules\n\n"
            + "## Always\n- Use USD\n- Be polite\n\n"
            + "## Never\n- Share passwords\n\n"
            + "## When\n- When amount > 1000: Escalate"
        )

    def test_when_rule_without_condition(self):
        rules = [DeployedRule(id="1", rule_type="when", content="Double check")]
        assert apply_rules_to_prompt("Base", rules).endswith("## When\n- Double check")

    def test_unknown_rule_types_are_ignored(self):
        rules = [DeployedRule(id="1", rule_type="sometimes", content="Maybe")]
        assert apply_rules_to_prompt("Base", rules) == "Base"


@pytest.mark.unit
class TestKnowledgeAndSkills:
    def test_knowledge_entries(self):
        mind = [
            DeployedMind(id="1", name="Fiscal Year", slug="fy", content="April", category="policy")
        ]
        prompt = append_knowledge("Base", mind)
        assert prompt == (
            "Base" + SECTION_SEPARATOR + "# Knowledge Base\n\n## policy: Fiscal Year\n\nApril"
        )

    def test_skills_with_guidance(self):
        prompt = append_skills("Base", [("Variance", "Compare actuals")])
        assert "# Available Skills" in prompt
        assert "Use them when appropriate." in prompt
        assert prompt.endswith("## Skill: Variance\n\nCompare actuals")

    def test_skills_without_guidance(self):
        prompt = append_skills("Base", [("Variance", "Compare")], with_guidance=False)
        assert "Use them when appropriate." not in prompt

    def test_no_skills(self):
        assert append_skills("Base", []) == "Base"


@pytest.mark.unit
class TestAgentPrompt:
    def test_default_prompt_when_agent_has_none(self):
        agent = DeployedAgent(id="a", slug="a", name="A")
        assert build_agent_prompt(agent) == DEFAULT_SYSTEM_PROMPT

    def test_includes_team_mind_after_agent_mind(self, team_config):
        head = team_config.get_head_agent()
        head.mind = [DeployedMind(id="m", name="Own", slug="own", content="Own knowledge")]

        prompt = build_agent_prompt(head, team_config.team_mind)

        assert prompt.startswith("You lead the finance team.")
        assert prompt.index("Own knowledge") < prompt.index("Starts in April")
        assert "# Rules" in prompt

    def test_delegation_section_lists_specialists(self, team_config):
        section = build_delegation_section(team_config.delegations_from("finance-lead"), team_config)

        assert section.startswith("# Team Delegation")
        assert "- **budget-analyst**: Budget questions" in section
        assert "`delegate_to_agent`" in section

    def test_delegation_section_falls_back_to_description(self, team_config):
        team_config.delegations[0].condition = None
        section = build_delegation_section(team_config.delegations, team_config)
        assert "- **budget-analyst**: Tracks budgets" in section

    def test_empty_delegation_section(self, team_config):
        assert build_delegation_section([], team_config) == ""


@pytest.mark.unit
class TestChatPrompt:
    def test_section_order(self):
        user = SessionUser(id="user-1", email="a@example.com", name="Ann")

        prompt = build_chat_prompt("AGENT", "ws-1", user, "# Business Context\n\nACME")

        sections = prompt.split(SECTION_SEPARATOR)
        assert sections[0] == "# Business Context\n\nACME"
        assert sections[1] == ERROR_HANDLING_SECTION
        assert sections[2].startswith("## Current Context")
        assert sections[3] == "AGENT"

    def test_without_business_context(self):
        prompt = build_chat_prompt("AGENT", "ws-1", SessionUser(id="user-1"))
        assert prompt.startswith(ERROR_HANDLING_SECTION)

    def test_context_section_omits_missing_user_fields(self):
        section = build_context_section("ws-1", SessionUser(id="user-1"))
        assert "- Workspace ID: ws-1\n- User ID: user-1\n" in section
        assert "User Name" not in section
        assert 'workspace_id: "ws-1"' in section


@pytest.mark.unit
class TestDelegatedPrompts:
    def test_delegated_agent_prompt(self, team_config):
        analyst = team_config.get_agent_by_slug("budget-analyst")

        prompt = build_delegated_agent_prompt(analyst, team_config.team_mind, "ws-1")

        assert prompt.startswith("You analyse budgets.")
        assert "# Delegation Context" in prompt
        assert "- Workspace ID: ws-1" in prompt
        assert "Use them when appropriate." not in prompt

    def test_message_with_context(self):
        message = build_delegated_message("Check budget", "User asked about food", None)
        assert message == (
            "## Context from conversation:\nUser asked about food\n\n## Task:\nCheck budget"
        )

    def test_message_without_context(self):
        assert build_delegated_message("Check budget", None, None) == "Check budget"

    def test_message_uses_context_template(self):
        delegation = DeployedDelegation(
            id="d",
            from_agent_slug="a",
            to_agent_slug="b",
            context_template="Task: {{task}} / Context: {{context}}",
        )
        assert build_delegated_message("Check", None, delegation) == (
            "Task: Check / Context: No additional context provided."
        )


@pytest.mark.unit
def test_estimate_tokens_rounds_up():
    assert estimate_tokens("abcde") == 2
    assert estimate_tokens("") == 0
