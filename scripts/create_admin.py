"""
Create an admin account for ConsultDesk.
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from consultdesk.accounts import create_account, find_account_by_email
from consultdesk.database import init_database
from consultdesk.roles import ROLE_ADMIN


def create_admin_user(email: str = None, password: str = None, name: str = "System Administrator"):
    """Create an admin account with full access."""
    init_database()

    admin_email = email or os.getenv("ADMIN_EMAIL") or "admin@consultdesk.local"
    admin_password = password or os.getenv("ADMIN_PASSWORD") or "Admin@123"  # Change this in production

    existing = find_account_by_email(admin_email)
    if existing:
        print(f"Account already exists: {admin_email} ({existing['_id']}, role {existing['role']})")
        return existing

    admin = create_account(ROLE_ADMIN, name, admin_email, admin_password, isProfileComplete=True)

    print("=" * 50)
    print("Admin user created successfully!")
    print("=" * 50)
    print(f"  Email: {admin_email}")
    print(f"  Password: {admin_password}")
    print(f"  Admin ID: {admin['_id']}")
    print("=" * 50)
    print("IMPORTANT: Change the password after first login!")
    print("=" * 50)
    return admin


if __name__ == "__main__":
    create_admin_user(*sys.argv[1:3])
