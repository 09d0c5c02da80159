"""
System prompt assembly.

A chat prompt is built in two passes. The agent prompt is the base prompt
plus rules, knowledge and skills (and delegation instructions for agents
that can delegate). The request sections are then prepended in order:
current context, error handling, business context. The final prompt reads
business context, error handling, context, agent prompt.
"""

import math
from collections.abc import Iterable

from agentdesk.domain.model.auth.session_user import SessionUser
from agentdesk.domain.model.team.team_config import (
    DeployedAgent,
    DeployedDelegation,
    DeployedMind,
    DeployedRule,
    DeployedTeamConfig,
)

SECTION_SEPARATOR = "\n\n---\n\n"

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful AI assistant for a finance management application.\n"
    "You help users with their financial questions and provide accurate, helpful information.\n"
    "Be concise and friendly."
)

SCHEDULED_SYSTEM_PROMPT = """You are an AI assistant executing a scheduled task.

## Critical Instructions
- You have access to tools that query real data from the workspace
- ALWAYS use the available tools to get actual data - NEVER fabricate or make up information
- If you cannot find data using tools, clearly state "I couldn't find any data" rather than inventing examples
- Tool results contain the actual current state of tasks, projects, and team data
- If no tools are available, you MUST state that you cannot complete data-dependent tasks

## Response Guidelines
- Complete the task thoroughly and accurately
- Base all responses ONLY on actual tool results
- Be concise but comprehensive
- If you need data but have no tools to get it, say so clearly"""

SKILLS_GUIDANCE = (
    "The following skills provide detailed guidance for specific tasks. "
    "Use them when appropriate."
)

ERROR_HANDLING_SECTION = """## Error Handling

When a tool call fails, DO NOT immediately give up. Instead:

1. **Analyze the error**: Understand what went wrong (permission denied, invalid input, resource not found, etc.)

2. **Try alternatives**: If one approach fails, consider:
   - Using different parameters
   - Trying a related tool that might work
   - Gathering more information first

3. **Provide partial results**: If some operations succeeded and others failed, share what worked and explain what didn't.

4. **Be transparent**: Tell the user what failed and why, but focus on what you CAN do to help.

5. **Only fail completely** if the core user request absolutely cannot be fulfilled.

Remember: A tool error is information, not a stop sign."""

DELEGATION_CONTEXT_INTRO = (
    "You are responding to a delegated task from the team's head agent. "
    "Focus on your specialty and provide a thorough, helpful response. "
    "The head agent will incorporate your response into the conversation with the user."
)


def estimate_tokens(text: str) -> int:
    """Rough token count (four characters per token) used for debug logging."""
    return math.ceil(len(text) / 4)


def apply_rules_to_prompt(prompt: str, rules: Iterable[DeployedRule]) -> str:
    """Append a ``# Rules`` section grouping rules by type, lowest priority first."""
    ordered = sorted(rules, key=lambda rule: rule.priority or 0)
    if not ordered:
        return prompt

    always = [f"- {r.content}" for r in ordered if r.rule_type == "always"]
    never = [f"- {r.content}" for r in ordered if r.rule_type == "never"]
    when = [
        f"- When {r.condition}: {r.content}" if r.condition else f"- {r.content}"
        for r in ordered
        if r.rule_type == "when"
    ]

    groups = []
    if always:
        groups.append("## Always\n" + "\n".join(always))
    if never:
        groups.append("## Never\n" + "\n".join(never))
    if when:
        groups.append("## When\n" + "\n".join(when))
    if not groups:
        return prompt
    return prompt + SECTION_SEPARATOR + "# Rules\n\n" + "\n\n".join(groups)


def append_knowledge(prompt: str, mind: Iterable[DeployedMind]) -> str:
    entries = [f"## {m.category}: {m.name}\n\n{m.content}" for m in mind]
    if not entries:
        return prompt
    return prompt + SECTION_SEPARATOR + "# Knowledge Base\n\n" + SECTION_SEPARATOR.join(entries)


def append_skills(
    prompt: str, skills: Iterable[tuple[str, str]], with_guidance: bool = True
) -> str:
    """``skills`` are (name, content) pairs."""
    entries = [f"## Skill: {name}\n\n{content}" for name, content in skills]
    if not entries:
        return prompt
    header = "# Available Skills\n\n"
    if with_guidance:
        header += SKILLS_GUIDANCE + "\n\n"
    return prompt + SECTION_SEPARATOR + header + SECTION_SEPARATOR.join(entries)


def build_agent_prompt(
    agent: DeployedAgent, team_mind: Iterable[DeployedMind] = ()
) -> str:
    """Base prompt of a template agent: system prompt, rules, knowledge, skills."""
    prompt = agent.system_prompt or DEFAULT_SYSTEM_PROMPT
    prompt = apply_rules_to_prompt(prompt, agent.rules)
    prompt = append_knowledge(prompt, [*agent.mind, *team_mind])
    return append_skills(prompt, [(s.name, s.content) for s in agent.skills])


def build_delegation_section(
    delegations: Iterable[DeployedDelegation], config: DeployedTeamConfig
) -> str:
    lines = []
    for delegation in delegations:
        target = config.get_agent_by_slug(delegation.to_agent_slug)
        description = delegation.condition or (target.description if target else None)
        lines.append(f"- **{delegation.to_agent_slug}**: {description or 'handles general tasks'}")
    if not lines:
        return ""
    specialists = "\n".join(lines)
    return f"""# Team Delegation

You are the head agent of a team. When a user's request is better handled by a specialist, you can delegate to them.

## Available Specialists:
{specialists}

## How to Delegate:
Call the `delegate_to_agent` tool with the specialist's `agent_slug`, the `task` you need done, and any relevant `context` from the conversation.

The tool returns the specialist's response. Incorporate it into your answer to the user rather than repeating it verbatim."""


def build_context_section(workspace_id: str, user: SessionUser) -> str:
    lines = [f"- Workspace ID: {workspace_id}", f"- User ID: {user.id}"]
    if user.name:
        lines.append(f"- User Name: {user.name}")
    if user.email:
        lines.append(f"- User Email: {user.email}")
    details = "\n".join(lines)
    return f"""## Current Context
{details}

You have access to this user's data within this workspace.

**IMPORTANT: When calling ANY tool, ALWAYS include `workspace_id: "{workspace_id}"` in the tool input.** This is required for proper data access. Do NOT ask the user for their workspace ID or user ID - use the values provided above."""


def build_chat_prompt(
    agent_prompt: str,
    workspace_id: str,
    user: SessionUser,
    business_context_instructions: str = "",
    delegation_section: str = "",
) -> str:
    prompt = agent_prompt
    if delegation_section:
        prompt = prompt + SECTION_SEPARATOR + delegation_section
    prompt = build_context_section(workspace_id, user) + SECTION_SEPARATOR + prompt
    prompt = ERROR_HANDLING_SECTION + SECTION_SEPARATOR + prompt
    if business_context_instructions:
        prompt = business_context_instructions + SECTION_SEPARATOR + prompt
    return prompt


def build_delegated_agent_prompt(
    agent: DeployedAgent, team_mind: Iterable[DeployedMind], workspace_id: str
) -> str:
    """Prompt for a specialist answering a delegated task."""
    prompt = agent.system_prompt or DEFAULT_SYSTEM_PROMPT
    prompt = apply_rules_to_prompt(prompt, agent.rules)
    prompt = append_knowledge(prompt, [*agent.mind, *team_mind])
    prompt = append_skills(prompt, [(s.name, s.content) for s in agent.skills], with_guidance=False)
    return (
        prompt
        + SECTION_SEPARATOR
        + "# Delegation Context\n\n"
        + DELEGATION_CONTEXT_INTRO
        + f"\n\n## Current Context\n- Workspace ID: {workspace_id}\n\n"
        + f'**IMPORTANT: When calling ANY tool, ALWAYS include `workspace_id: "{workspace_id}"` '
        + "in the tool input.** This is required for proper data access."
    )


def build_delegated_message(
    task: str, context: str | None, delegation: DeployedDelegation | None
) -> str:
    if delegation and delegation.context_template:
        return delegation.context_template.replace("{{task}}", task, 1).replace(
            "{{context}}", context or "No additional context provided.", 1
        )
    if context:
        return f"## Context from conversation:\n{context}\n\n## Task:\n{task}"
    return task

