"""
Role-based access control.

Role Hierarchy:
1. ADMIN - Platform administrator (catalog, accounts, leads, assignment)
2. MANAGER - Supervises employees; L1 reviewer for their team
3. EMPLOYEE - Works assigned orders and leads
4. CUSTOMER - Buys services, uploads documents, raises queries
"""

# Role Constants
ROLE_ADMIN = 'admin'
ROLE_MANAGER = 'manager'
ROLE_EMPLOYEE = 'employee'
ROLE_CUSTOMER = 'customer'

# All roles in hierarchy order (highest to lowest)
ALL_ROLES = [
    ROLE_ADMIN,
    ROLE_MANAGER,
    ROLE_EMPLOYEE,
    ROLE_CUSTOMER,
]

# Roles that can hold orders in their assignedCustomers mirror
STAFF_ROLES = [ROLE_MANAGER, ROLE_EMPLOYEE]

# Role display names
ROLE_NAMES = {
    ROLE_ADMIN: 'Administrator',
    ROLE_MANAGER: 'Manager',
    ROLE_EMPLOYEE: 'Employee',
    ROLE_CUSTOMER: 'Customer',
}

# Permissions
PERM_MANAGE_SERVICES = 'manage_services'
PERM_MANAGE_USERS = 'manage_users'
PERM_MANAGE_LEADS = 'manage_leads'
PERM_ASSIGN_ORDERS = 'assign_orders'
PERM_OVERRIDE_STATUS = 'override_status'
PERM_EXPORT_DATA = 'export_data'
PERM_WORK_ORDERS = 'work_orders'
PERM_WORK_LEADS = 'work_leads'
PERM_REVIEW_ORDERS = 'review_orders'
PERM_MANAGE_TEAM = 'manage_team'
PERM_PLACE_ORDERS = 'place_orders'

# Role-Permission Mapping
ROLE_PERMISSIONS = {
    ROLE_ADMIN: [
        PERM_MANAGE_SERVICES,
        PERM_MANAGE_USERS,
        PERM_MANAGE_LEADS,
        PERM_ASSIGN_ORDERS,
        PERM_OVERRIDE_STATUS,
        PERM_EXPORT_DATA,
        PERM_REVIEW_ORDERS,
    ],
    ROLE_MANAGER: [
        PERM_WORK_ORDERS,
        PERM_WORK_LEADS,
        PERM_REVIEW_ORDERS,
        PERM_MANAGE_TEAM,
    ],
    ROLE_EMPLOYEE: [
        PERM_WORK_ORDERS,
        PERM_WORK_LEADS,
        PERM_REVIEW_ORDERS,
    ],
    ROLE_CUSTOMER: [
        PERM_PLACE_ORDERS,
    ],
}


def get_user_role(user: dict) -> str:
    """Role of an account or session user dict."""
    if not user:
        return None
    return user.get('role')


def get_user_role_display(user: dict) -> str:
    return ROLE_NAMES.get(get_user_role(user), 'Unknown')


def get_user_permissions(user: dict) -> list:
    """Get all permissions for a user based on their role."""
    return list(ROLE_PERMISSIONS.get(get_user_role(user), []))


def has_permission(user: dict, permission: str) -> bool:
    """Check if user has a specific permission."""
    return permission in get_user_permissions(user)


def has_any_role(user: dict, allowed_roles) -> bool:
    return get_user_role(user) in allowed_roles


def is_admin(user: dict) -> bool:
    return get_user_role(user) == ROLE_ADMIN


def is_staff(user: dict) -> bool:
    """Employees and managers."""
    return get_user_role(user) in STAFF_ROLES
