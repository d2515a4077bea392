"""Guest session id format."""
import secrets
import string
import time

GUEST_PREFIX = "guest_"
_RANDOM_ALPHABET = string.digits + string.ascii_lowercase
_RANDOM_LENGTH = 9


def generate_guest_session_id() -> str:
    """Create a token of the form ``guest_<epoch-millis>_<9 base36 chars>``."""
    millis = int(time.time() * 1000)
    suffix = "".join(secrets.choice(_RANDOM_ALPHABET) for _ in range(_RANDOM_LENGTH))
    return f"{GUEST_PREFIX}{millis}_{suffix}"


def is_guest_session_id(value) -> bool:
    return isinstance(value, str) and value.startswith(GUEST_PREFIX)
