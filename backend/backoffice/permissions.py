"""
Permission Constants and Role Mappings

WHY: Centralized permission definitions ensure consistency across the application.
All permission codes and role mappings defined here.

DESIGN PRINCIPLES:
- Permissions are granular (one action per permission)
- Roles are a fixed set (admin, manager, operator); the mapping is static
- Admin has all permissions
"""

from .models import UserRole


class PermissionCategory:
    """Permission categories for organization."""
    COMPANIES = "COMPANIES"
    CONSUMPTION = "CONSUMPTION"
    CLOSURES = "CLOSURES"
    DOCUMENTS = "DOCUMENTS"
    SYSTEM = "SYSTEM"


# Each permission is defined as: (code, name, description, category)
PERMISSION_DEFINITIONS = [
    # COMPANIES
    (
        "VIEW_COMPANIES",
        "View Companies",
        "View client companies and their billing details",
        PermissionCategory.COMPANIES
    ),
    (
        "MANAGE_COMPANIES",
        "Manage Companies",
        "Create, edit, deactivate and delete client companies",
        PermissionCategory.COMPANIES
    ),

    # CONSUMPTION
    (
        "VIEW_CONSUMPTION",
        "View Consumption",
        "View daily consumption records",
        PermissionCategory.CONSUMPTION
    ),
    (
        "RECORD_CONSUMPTION",
        "Record Consumption",
        "Enter consumption records (daily order entry)",
        PermissionCategory.CONSUMPTION
    ),
    (
        "DELETE_CONSUMPTION",
        "Delete Consumption",
        "Delete consumption records",
        PermissionCategory.CONSUMPTION
    ),

    # CLOSURES
    (
        "VIEW_CLOSURES",
        "View Closures",
        "View monthly closures and their history",
        PermissionCategory.CLOSURES
    ),
    (
        "GENERATE_CLOSURES",
        "Generate Closures",
        "Run the monthly closure aggregation",
        PermissionCategory.CLOSURES
    ),
    (
        "ADVANCE_CLOSURES",
        "Advance Closures",
        "Send reports and invoices, confirm payments",
        PermissionCategory.CLOSURES
    ),
    (
        "OVERRIDE_CLOSURES",
        "Override Closures",
        "Hand-edit closure totals (always audited)",
        PermissionCategory.CLOSURES
    ),
    (
        "DELETE_CLOSURES",
        "Delete Closures",
        "Delete a closure and its document sends",
        PermissionCategory.CLOSURES
    ),

    # DOCUMENTS
    (
        "VIEW_SENDS",
        "View Document Sends",
        "View report, billing notice and tax invoice deliveries",
        PermissionCategory.DOCUMENTS
    ),
    (
        "MANAGE_SENDS",
        "Manage Document Sends",
        "Resend documents, mark them sent, edit notes",
        PermissionCategory.DOCUMENTS
    ),

    # SYSTEM
    (
        "VIEW_REPORTS",
        "View Reports",
        "View the dashboard and monthly reports",
        PermissionCategory.SYSTEM
    ),
    (
        "VIEW_SETTINGS",
        "View Settings",
        "View the price table and business profile",
        PermissionCategory.SYSTEM
    ),
    (
        "MANAGE_SETTINGS",
        "Manage Settings",
        "Change the price table and business profile",
        PermissionCategory.SYSTEM
    ),
    (
        "MANAGE_USERS",
        "Manage Users",
        "Create and deactivate back-office users",
        PermissionCategory.SYSTEM
    ),
]


def get_all_permission_codes():
    """Get list of all permission codes."""
    return [perm[0] for perm in PERMISSION_DEFINITIONS]


ROLE_PERMISSIONS = {
    # Admin: everything
    UserRole.ADMIN.value: frozenset(get_all_permission_codes()),

    # Manager: runs the month end, cannot manage users
    UserRole.MANAGER.value: frozenset({
        "VIEW_COMPANIES",
        "MANAGE_COMPANIES",
        "VIEW_CONSUMPTION",
        "RECORD_CONSUMPTION",
        "DELETE_CONSUMPTION",
        "VIEW_CLOSURES",
        "GENERATE_CLOSURES",
        "ADVANCE_CLOSURES",
        "OVERRIDE_CLOSURES",
        "DELETE_CLOSURES",
        "VIEW_SENDS",
        "MANAGE_SENDS",
        "VIEW_REPORTS",
        "VIEW_SETTINGS",
        "MANAGE_SETTINGS",
    }),

    # Operator: daily order entry only
    UserRole.OPERATOR.value: frozenset({
        "VIEW_COMPANIES",
        "VIEW_CONSUMPTION",
        "RECORD_CONSUMPTION",
        "VIEW_REPORTS",
    }),
}


def get_role_permissions(role: str) -> frozenset:
    return ROLE_PERMISSIONS.get(role, frozenset())


def has_permission(role: str, permission_code: str) -> bool:
    return permission_code in get_role_permissions(role)


def get_permission_definition(code):
    """Get full definition for a permission code."""
    for perm in PERMISSION_DEFINITIONS:
        if perm[0] == code:
            return {
                "code": perm[0],
                "name": perm[1],
                "description": perm[2],
                "category": perm[3],
            }
    return None
