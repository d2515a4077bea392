"""Session package: ephemeral storage, guest identity, session context."""
from .context import SessionContext
from .identity import GUEST_PREFIX, generate_guest_session_id, is_guest_session_id
from .storage import MemorySessionStorage, RedisSessionStorage, SessionStorage

__all__ = [
    "GUEST_PREFIX",
    "MemorySessionStorage",
    "RedisSessionStorage",
    "SessionContext",
    "SessionStorage",
    "generate_guest_session_id",
    "is_guest_session_id",
]
