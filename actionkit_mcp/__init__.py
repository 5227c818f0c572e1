"""
MCP gateway exposing Paragon ActionKit actions as tools.

Users authenticate through a small bootstrap tool flow (email prompt,
redirect to the Paragon portal, tool retrieval); afterwards the session's
tool list is the user's ActionKit catalog and every call is forwarded to
ActionKit with an RS256-signed assertion for that user.
"""

__version__ = "0.1.0"
