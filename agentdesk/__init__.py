"""AgentDesk: AI team backend for multi-tenant workspaces."""

__version__ = "0.3.0"
