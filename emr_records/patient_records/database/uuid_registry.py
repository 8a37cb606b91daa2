"""UUID helpers: records store 16-byte UUIDs, callers see canonical strings."""

import uuid


def create_uuid() -> bytes:
    """Generate a fresh UUID in its 16-byte storage form."""
    return uuid.uuid4().bytes


def uuid_to_string(value: bytes | str | None) -> str | None:
    """Render a stored UUID as its canonical string."""
    if value is None:
        return None
    if isinstance(value, str):
        return str(uuid.UUID(value))
    return str(uuid.UUID(bytes=bytes(value)))


def uuid_to_bytes(value: str) -> bytes:
    """Convert a canonical UUID string to its storage form.

    Raises ValueError for anything that is not a UUID.
    """
    return uuid.UUID(str(value)).bytes


def is_valid_uuid(value) -> bool:
    """Check whether a value parses as a UUID string."""
    if not isinstance(value, str):
        return False
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True
