"""
Connections module exports.
"""

# OAuth exports
from .oauth_connector import setup_authentication, get_oauth_token

# Postgres exports
from .postgres_connector import (
    get_connection,
    close_all_connections,
    fetch_one,
    insert_many_async,
)

# LLM exports
from .llm_connector import (
    complete,
    complete_with_tools,
    check_connection,
    close_all_clients,
)

__all__ = [
    # OAuth
    "setup_authentication",
    "get_oauth_token",
    # Postgres
    "get_connection",
    "close_all_connections",
    "fetch_one",
    "insert_many_async",
    # LLM
    "complete",
    "complete_with_tools",
    "check_connection",
    "close_all_clients",
]
