# Overview: All permission definitions organized by category.
# Each permission is defined as: (code, name, description, category)

from .categories import PermissionCategory


# -- PRODUCTS --

PRODUCT_PERMISSIONS = [
    ("products.view", "View Products", "List and view products and their variants", PermissionCategory.PRODUCTS),
    ("products.create", "Create Products", "Create products with their variants", PermissionCategory.PRODUCTS),
    ("products.edit", "Edit Products", "Update products and upsert their variants", PermissionCategory.PRODUCTS),
    ("products.delete", "Delete Products", "Soft delete products (variants follow)", PermissionCategory.PRODUCTS),
    ("products.restore", "Restore Products", "Restore soft-deleted products", PermissionCategory.PRODUCTS),
    ("products.force-delete", "Purge Products", "Permanently remove soft-deleted products", PermissionCategory.PRODUCTS),
]


# -- TEMPLATES --

TEMPLATE_PERMISSIONS = [
    ("templates.view", "View Templates", "List and view stock-out templates", PermissionCategory.TEMPLATES),
    ("templates.create", "Create Templates", "Create stock-out templates", PermissionCategory.TEMPLATES),
    ("templates.edit", "Edit Templates", "Rename templates and change their variants", PermissionCategory.TEMPLATES),
    ("templates.delete", "Delete Templates", "Soft delete inactive, empty templates", PermissionCategory.TEMPLATES),
    ("templates.restore", "Restore Templates", "Restore soft-deleted templates", PermissionCategory.TEMPLATES),
    ("templates.force-delete", "Purge Templates", "Permanently remove soft-deleted templates", PermissionCategory.TEMPLATES),
    ("templates.set-active", "Activate Templates", "Choose the active template for stock-out forms", PermissionCategory.TEMPLATES),
]


# -- STOCK IN --

STOCK_IN_PERMISSIONS = [
    ("stock-in.view", "View Stock In", "List and view stock-in records", PermissionCategory.STOCK_IN),
    ("stock-in.create", "Create Stock In", "Create draft stock-in records", PermissionCategory.STOCK_IN),
    ("stock-in.edit", "Edit Stock In", "Edit draft stock-in records", PermissionCategory.STOCK_IN),
    ("stock-in.delete", "Delete Stock In", "Delete draft stock-in records", PermissionCategory.STOCK_IN),
    ("stock-in.submit", "Submit Stock In", "Submit stock-in records to the ledger", PermissionCategory.STOCK_IN),
]


# -- STOCK OUT --

STOCK_OUT_PERMISSIONS = [
    ("stock-out.view", "View Stock Out", "List and view stock-out records", PermissionCategory.STOCK_OUT),
    ("stock-out.create", "Create Stock Out", "Create draft stock-out records", PermissionCategory.STOCK_OUT),
    ("stock-out.edit", "Edit Stock Out", "Edit draft stock-out records", PermissionCategory.STOCK_OUT),
    ("stock-out.delete", "Delete Stock Out", "Delete draft stock-out records", PermissionCategory.STOCK_OUT),
    ("stock-out.submit", "Submit Stock Out", "Submit stock-out records to the ledger", PermissionCategory.STOCK_OUT),
]


# -- REPORTS --

REPORT_PERMISSIONS = [
    ("reports.view", "View Reports", "View stock-in and stock-out movement reports", PermissionCategory.REPORTS),
]


# -- USERS --

USER_PERMISSIONS = [
    ("users.index", "List Users", "List user accounts", PermissionCategory.USERS),
    ("users.show", "View Users", "View a user account", PermissionCategory.USERS),
    ("users.create", "Create Users", "Create user accounts", PermissionCategory.USERS),
    ("users.edit", "Edit Users", "Edit other users' accounts", PermissionCategory.USERS),
    ("users.delete", "Delete Users", "Delete user accounts", PermissionCategory.USERS),
    ("users.toggle-status", "Toggle User Status", "Activate or deactivate user accounts", PermissionCategory.USERS),
    ("users.suspend", "Suspend Users", "Suspend user accounts", PermissionCategory.USERS),
    ("users.unsuspend", "Unsuspend Users", "Lift user suspensions", PermissionCategory.USERS),
    ("users.assign-role", "Assign Roles", "Assign or remove a user's role", PermissionCategory.USERS),
    ("users.manage", "Manage Users", "Act on any user account", PermissionCategory.USERS),
    ("roles.view", "View Roles", "List roles and their permissions", PermissionCategory.USERS),
]


PERMISSION_DEFINITIONS = (
    PRODUCT_PERMISSIONS
    + TEMPLATE_PERMISSIONS
    + STOCK_IN_PERMISSIONS
    + STOCK_OUT_PERMISSIONS
    + REPORT_PERMISSIONS
    + USER_PERMISSIONS
)
