import secrets
import string
from datetime import datetime, timezone
from typing import Optional

REFERENCE_ALPHABET = string.digits + string.ascii_uppercase


def random_suffix(length: int) -> str:
    return ''.join(secrets.choice(REFERENCE_ALPHABET) for _ in range(length))


def generate_reference(prefix: str, length: int = 6, now: Optional[datetime] = None) -> str:
    """Human-readable reference such as ``ORD-20260117-7K2QZD``.

    Unique enough for people to read out loud; the unique index on the column
    is what actually guarantees uniqueness.
    """
    now = now or datetime.now(timezone.utc)
    return f"{prefix}-{now.strftime('%Y%m%d')}-{random_suffix(length)}"


def epoch_millis(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)


def generate_transaction_id(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"TXN-{epoch_millis(now)}-{random_suffix(7)}"
