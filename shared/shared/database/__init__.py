from shared.database.postgres import (
    AsyncSessionFactory,
    Base,
    get_async_engine,
    get_async_session_factory,
)
from shared.database.types import UTCDateTime

__all__ = [
    "AsyncSessionFactory",
    "Base",
    "UTCDateTime",
    "get_async_engine",
    "get_async_session_factory",
]
