"""
HTTP application for fulfillment-mcp.
"""
