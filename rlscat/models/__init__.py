# rlscat Models
from rlscat.models.database import Base, create_tables, create_async_db_engine, create_async_session_factory
from rlscat.models.policy import RlsPolicy, Command, Permissive

__all__ = [
    "Base",
    "create_tables",
    "create_async_db_engine",
    "create_async_session_factory",
    "RlsPolicy",
    "Command",
    "Permissive",
]
