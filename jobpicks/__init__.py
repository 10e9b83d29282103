"""jobpicks: site-scoped stores, resolution service and MCP tools for driver job picks."""
