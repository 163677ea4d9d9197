# Overview: Static permission table. Each permission is (code, name, description, category).

class PermissionCategory:
    INVENTORY = "INVENTORY"
    SALES = "SALES"
    ORDERS = "ORDERS"
    DEBTS = "DEBTS"
    PEOPLE = "PEOPLE"
    SYSTEM = "SYSTEM"


PERMISSION_DEFINITIONS = [
    # Inventory
    ("VIEW_INVENTORY", "View Inventory", "View products and option vocabularies", PermissionCategory.INVENTORY),
    ("MANAGE_PRODUCTS", "Manage Products", "Create, edit and delete products", PermissionCategory.INVENTORY),
    ("MANAGE_OPTIONS", "Manage Options", "Add and delete option vocabulary values", PermissionCategory.INVENTORY),
    ("RECEIVE_STOCK", "Receive Stock", "Import stock from a supplier on credit", PermissionCategory.INVENTORY),
    ("DISPOSE_STOCK", "Dispose Stock", "Write off damaged or expired stock", PermissionCategory.INVENTORY),

    # Sales
    ("CREATE_INVOICE", "Checkout", "Create invoices at the counter", PermissionCategory.SALES),
    ("VIEW_INVOICES", "View Invoices", "View invoice history", PermissionCategory.SALES),
    ("VOID_INVOICE", "Void Invoice", "Void an invoice and restock its lines", PermissionCategory.SALES),
    ("RETURN_INVOICE_ITEMS", "Return Items", "Take back goods sold on an invoice", PermissionCategory.SALES),

    # Orders
    ("PLACE_ORDER", "Place Order", "Place a self-service order", PermissionCategory.ORDERS),
    ("VIEW_OWN_ORDERS", "View Own Orders", "View orders placed by the current user", PermissionCategory.ORDERS),
    ("REQUEST_ORDER_CANCELLATION", "Request Cancellation", "Request cancellation of an own order", PermissionCategory.ORDERS),
    ("VIEW_ORDERS", "View Orders", "View every order", PermissionCategory.ORDERS),
    ("MANAGE_ORDERS", "Manage Orders", "Set any order or payment status (full access rights)", PermissionCategory.ORDERS),

    # Debts
    ("VIEW_DEBTS", "View Debts", "View the debt ledger", PermissionCategory.DEBTS),
    ("MANAGE_DEBTS", "Manage Debts", "Create debts and change their status", PermissionCategory.DEBTS),

    # People
    ("VIEW_CUSTOMERS", "View Customers", "View customer records", PermissionCategory.PEOPLE),
    ("MANAGE_CUSTOMERS", "Manage Customers", "Create and edit customer records", PermissionCategory.PEOPLE),
    ("VIEW_EMPLOYEES", "View Employees", "View employee records", PermissionCategory.PEOPLE),
    ("MANAGE_EMPLOYEES", "Manage Employees", "Provision employee accounts", PermissionCategory.PEOPLE),
    ("REVIEW_ACCESS_REQUESTS", "Review Access Requests", "Approve or reject sign-up requests", PermissionCategory.PEOPLE),

    # System
    ("VIEW_SECURITY_EVENTS", "View Security Events", "View the authorization audit log", PermissionCategory.SYSTEM),
]


def _all_codes():
    return [perm[0] for perm in PERMISSION_DEFINITIONS]


_STAFF_PERMISSIONS = [
    "VIEW_INVENTORY",
    "RECEIVE_STOCK",
    "DISPOSE_STOCK",
    "CREATE_INVOICE",
    "VIEW_INVOICES",
    "VIEW_ORDERS",
    "VIEW_DEBTS",
    "VIEW_CUSTOMERS",
    "MANAGE_CUSTOMERS",
    "VIEW_EMPLOYEES",
]

DEFAULT_ROLE_PERMISSIONS = {
    "admin": _all_codes(),
    "manager": [code for code in _all_codes() if code != "MANAGE_EMPLOYEES"],
    "staff": _STAFF_PERMISSIONS,
    "customer": [
        "VIEW_INVENTORY",
        "PLACE_ORDER",
        "VIEW_OWN_ORDERS",
        "REQUEST_ORDER_CANCELLATION",
    ],
}

# Holding this permission is what "full access rights" means for orders
FULL_ACCESS_PERMISSION = "MANAGE_ORDERS"


def get_all_permission_codes():
    """Get list of all permission codes."""
    return _all_codes()


def get_permissions_by_category(category):
    """Get all permissions in a category."""
    return [perm for perm in PERMISSION_DEFINITIONS if perm[3] == category]


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


def validate_permission_code(code):
    """Check if a permission code is valid."""
    return code in _all_codes()
