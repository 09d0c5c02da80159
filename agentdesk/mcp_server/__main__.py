from agentdesk.mcp_server.server import main

main()
