"""
Database initialization script.
Creates tables, the default admin, and an optional demo catalog.

Usage:
    python scripts/init_db.py            # create missing tables + admin
    python scripts/init_db.py --reset    # drop everything first
    python scripts/init_db.py --demo     # also seed demo services and staff
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from consultdesk.database import USE_POSTGRES, init_database as create_tables, reset_database

DEMO_SERVICES = [
    {
        "category": "Income Tax",
        "name": "ITR Filing - Salaried",
        "hsncode": "998231",
        "gstRate": 18,
        "packages": [
            {"name": "Basic", "actualPrice": 1499, "salePrice": 999, "processingDays": 7},
            {"name": "Premium", "actualPrice": 2999, "salePrice": 2499, "processingDays": 3},
        ],
    },
    {
        "category": "GST",
        "name": "GST Registration",
        "hsncode": "998232",
        "gstRate": 18,
        "packages": [
            {"name": "Standard", "actualPrice": 2499, "salePrice": 1999, "processingDays": 10},
        ],
    },
]


def seed_demo_data():
    """Services, a manager and two employees reporting to them."""
    from consultdesk import accounts, catalog
    from scripts.create_admin import create_admin_user

    admin = create_admin_user()
    services = [catalog.create_service(data) for data in DEMO_SERVICES]
    print(f"  Created {len(services)} services: {', '.join(s['_id'] for s in services)}")

    manager = accounts.create_manager(admin, "Demo Manager", "manager@consultdesk.local", "Manager@123")
    print(f"  Created manager {manager['_id']}")
    for i, service in enumerate(services, 1):
        employee, _ = accounts.create_employee(
            f"Demo Employee {i}", f"employee{i}@consultdesk.local", "Employee@123",
            [service["_id"]], l1_emp_code=manager["_id"],
        )
        accounts.assign_employee_to_manager(manager["_id"], employee["_id"])
        print(f"  Created employee {employee['_id']} handling {service['_id']}")


def init_database(reset: bool = False, demo: bool = False):
    """Initialize the database with tables, admin, and optional demo data."""
    print("=" * 60, flush=True)
    print("ConsultDesk - Database Initialization", flush=True)
    print(f"Database: {'PostgreSQL' if USE_POSTGRES else 'SQLite'}", flush=True)
    print("=" * 60, flush=True)

    print("\nStep 1: Creating database tables...")
    print("-" * 40)
    if reset:
        reset_database()
    else:
        create_tables()

    if demo:
        print("\nStep 2: Seeding demo catalog and staff...")
        print("-" * 40)
        seed_demo_data()
    else:
        print("\nStep 2: Creating admin account...")
        print("-" * 40)
        from scripts.create_admin import create_admin_user
        create_admin_user()

    print("\n" + "=" * 60)
    print("DATABASE INITIALIZATION COMPLETE!")
    print("=" * 60)


if __name__ == "__main__":
    init_database(reset="--reset" in sys.argv, demo="--demo" in sys.argv)
