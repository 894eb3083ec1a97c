"""
Permission constants and role mappings.

WHY: Centralized permission definitions ensure consistency across the application.
The shop has two roles; each role maps to a fixed set of permission codes.

DESIGN PRINCIPLES:
- Permissions are granular (one action per permission)
- Owner has all permissions
- Shopkeeper runs the counter but never sees cost, profit or user admin
"""

# =============================================================================
# PERMISSION DEFINITIONS
# =============================================================================

# Each permission is defined as: (code, name, description)
PERMISSION_DEFINITIONS = [
    ("VIEW_PRODUCTS", "View Products", "List and view catalog products and stock"),
    ("MANAGE_PRODUCTS", "Manage Products", "Create, edit and delete products; adjust stock"),
    ("VIEW_COST", "View Cost", "See cost per unit on products and invoice items"),
    ("MANAGE_CUSTOMERS", "Manage Customers", "Create, edit and look up customers"),
    ("CREATE_INVOICE", "Create Invoice", "Bill a cart and view invoices"),
    ("RECORD_PAYMENT", "Record Payment", "Receive payments against open invoices"),
    ("VIEW_REVENUE", "View Revenue", "Revenue, cost and profit reports; ledger audit"),
    ("MANAGE_USERS", "Manage Users", "List users and add shopkeepers"),
]

ALL_PERMISSIONS = frozenset(code for code, _, _ in PERMISSION_DEFINITIONS)

ROLE_OWNER = "owner"
ROLE_SHOPKEEPER = "shopkeeper"

VALID_ROLES = (ROLE_OWNER, ROLE_SHOPKEEPER)


# =============================================================================
# DEFAULT ROLE MAPPINGS
# =============================================================================

DEFAULT_ROLE_PERMISSIONS = {
    ROLE_OWNER: ALL_PERMISSIONS,
    ROLE_SHOPKEEPER: frozenset([
        "VIEW_PRODUCTS",
        "MANAGE_PRODUCTS",
        "MANAGE_CUSTOMERS",
        "CREATE_INVOICE",
        "RECORD_PAYMENT",
    ]),
}


def role_permissions(role: str | None) -> frozenset[str]:
    return DEFAULT_ROLE_PERMISSIONS.get(role or "", frozenset())


def role_has_permission(role: str | None, permission_code: str) -> bool:
    return permission_code in role_permissions(role)
