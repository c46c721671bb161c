"""
Authentication utilities: password hashing, session management, and auth helpers.
"""
import secrets
import string
from datetime import datetime, timedelta
from typing import Optional

import bcrypt
from itsdangerous import URLSafeTimedSerializer, BadSignature

from consultdesk.config import SECRET_KEY, SESSION_MAX_AGE
from consultdesk.database import get_db, load_document, find_documents


def generate_password(length: int = 12) -> str:
    """Generate a random password."""
    alphabet = string.ascii_letters + string.digits + "!@#$%"
    return ''.join(secrets.choice(alphabet) for _ in range(length))


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    password_bytes = password.encode('utf-8')
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(password_bytes, salt).decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed stored hash
        return False


def generate_session_id() -> str:
    """Generate a unique session ID."""
    return secrets.token_urlsafe(32)


def create_session(account_id: str) -> str:
    """Create a new session for an account and return the session ID."""
    session_id = generate_session_id()
    expires_at = datetime.now() + timedelta(seconds=SESSION_MAX_AGE)

    with get_db() as conn:
        cursor = conn.cursor()
        # Remove any existing sessions for this account
        cursor.execute("DELETE FROM sessions WHERE account_id = ?", (account_id,))
        cursor.execute(
            """INSERT INTO sessions (session_id, account_id, expires_at)
               VALUES (?, ?, ?)""",
            (session_id, account_id, expires_at.isoformat())
        )

    return session_id


def validate_session(session_id: str) -> Optional[dict]:
    """
    Validate a session ID and return the account's user info if valid.
    Returns None if session is invalid, expired, or the account is inactive.
    """
    if not session_id:
        return None

    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute(
            "SELECT account_id, expires_at FROM sessions WHERE session_id = ?",
            (session_id,)
        )
        row = cursor.fetchone()
        if not row:
            return None

        # PostgreSQL returns datetime objects, SQLite returns strings
        expires_at = row['expires_at']
        if isinstance(expires_at, str):
            expires_at = datetime.fromisoformat(expires_at)
        if datetime.now() > expires_at:
            cursor.execute("DELETE FROM sessions WHERE session_id = ?", (session_id,))
            return None

        account = load_document("accounts", row['account_id'], conn=conn)

    if not account or not account.get('isActive'):
        return None

    from consultdesk.roles import get_user_permissions, get_user_role_display, ROLE_ADMIN

    user_data = {
        '_id': account['_id'],
        'name': account.get('name'),
        'email': account.get('email'),
        'role': account.get('role'),
        'is_admin': account.get('role') == ROLE_ADMIN,
        'L1EmpCode': account.get('L1EmpCode'),
    }
    user_data['role_display'] = get_user_role_display(user_data)
    user_data['permissions'] = get_user_permissions(user_data)
    return user_data


def delete_session(session_id: str) -> None:
    """Delete a session (logout)."""
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute("DELETE FROM sessions WHERE session_id = ?", (session_id,))


def authenticate_account(email: str, password: str) -> Optional[dict]:
    """
    Authenticate an account by email and password.
    Returns the account document if successful, None otherwise.
    """
    rows = find_documents("accounts", "email = ?", ((email or "").lower().strip(),))
    if not rows:
        return None
    account = rows[0]

    if not account.get('isActive'):
        return None

    if not verify_password(password, account.get('passwordHash')):
        return None

    return account


def get_serializer():
    """Get the URL-safe serializer for session cookies."""
    return URLSafeTimedSerializer(SECRET_KEY)


def serialize_session(session_id: str) -> str:
    """Serialize session ID for cookie storage."""
    serializer = get_serializer()
    return serializer.dumps(session_id)


def deserialize_session(token: str) -> Optional[str]:
    """Deserialize session ID from cookie."""
    try:
        serializer = get_serializer()
        return serializer.loads(token, max_age=SESSION_MAX_AGE)
    except BadSignature:
        return None
