"""
MCP tool server.

Runs as a stdio subprocess of the chat service. Tools are CRUD operations
over workspace business tables; ``ENABLED_TOOLS`` restricts which ones are
exposed.
"""
