"""
Infrastructure package for dbrecord.

Centralizes database connectivity concerns (connections, pooling, logins).
Keep this layer focused on I/O and resource management, decoupled from
the record engine.
"""

from dbrecord.infrastructure.db_factory import (
    DedicatedLogin,
    Login,
    PooledLogin,
    PoolManager,
    get_sync_connection,
    get_sync_pool,
    open_connection,
    resolve_connection,
)

__all__ = [
    "DedicatedLogin",
    "Login",
    "PoolManager",
    "PooledLogin",
    "get_sync_connection",
    "get_sync_pool",
    "open_connection",
    "resolve_connection",
]
