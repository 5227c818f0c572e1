from actionkit_mcp.server import main

main()
