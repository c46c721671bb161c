"""
Human-readable identifier generation.

Account, service and lead ids are a prefix plus a per-prefix counter
(EMP001, SER012, LEAD1234). The counter lives in the sequences table and is
incremented inside a single write transaction, so two concurrent callers
never receive the same value.
"""
import random
import secrets
import time

from consultdesk.config import PREFIX_PACKAGE
from consultdesk.database import get_db
from consultdesk.errors import ValidationError


def generate_id(prefix: str) -> str:
    """Allocate the next id for a prefix: PREFIX + sequence padded to 3 digits."""
    if not prefix or not str(prefix).strip():
        raise ValidationError("Prefix is required for ID generation")
    prefix = str(prefix).strip()

    with get_db() as conn:
        cursor = conn.cursor()
        # The UPDATE takes the write lock; the SELECT reads our own increment
        cursor.execute("INSERT OR IGNORE INTO sequences (prefix, seq) VALUES (?, 0)", (prefix,))
        cursor.execute("UPDATE sequences SET seq = seq + 1 WHERE prefix = ?", (prefix,))
        cursor.execute("SELECT seq FROM sequences WHERE prefix = ?", (prefix,))
        seq = cursor.fetchone()['seq']

    return f"{prefix}{seq:03d}"


def current_sequence(prefix: str) -> int:
    """Last value handed out for a prefix (0 if never used)."""
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute("SELECT seq FROM sequences WHERE prefix = ?", (prefix,))
        row = cursor.fetchone()
    return row['seq'] if row else 0


def generate_order_id() -> str:
    """Order ids: ORD + epoch milliseconds + random suffix."""
    return f"ORD{int(time.time() * 1000)}{secrets.randbelow(1000):03d}"


def generate_package_id() -> str:
    return f"{PREFIX_PACKAGE}{secrets.token_hex(6).upper()}"


def generate_referral_code() -> str:
    """6-character upper-case hex code."""
    return secrets.token_hex(3).upper()


def generate_username(email: str) -> str:
    """Username from the email local part plus a random number."""
    local_part = (email or "").split("@")[0] or "user"
    return f"{local_part}{random.randint(0, 999)}"
