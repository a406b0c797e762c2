"""Tool-calling agent runtime: think/act loop, model gateway, tool registry."""
