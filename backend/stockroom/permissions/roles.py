# Overview: Default roles and the permissions each one starts with.

from .definitions import PERMISSION_DEFINITIONS


ADMIN_ROLE = "admin"

DEFAULT_ROLES = [
    ("admin", "Full system access"),
    ("inventory_staff", "Day-to-day stock entry"),
    ("warehouse_supervisor", "Stock entry, templates, catalog and staff oversight"),
    ("management", "Reporting and read access"),
]

# admin is also allowed everything by the authorization predicate itself;
# the explicit list keeps permission listings truthful.
DEFAULT_ROLE_PERMISSIONS = {
    "admin": [perm[0] for perm in PERMISSION_DEFINITIONS],
    "inventory_staff": [
        "products.view",
        "templates.view",
        "stock-in.view", "stock-in.create", "stock-in.edit", "stock-in.submit",
        "stock-out.view", "stock-out.create", "stock-out.edit", "stock-out.submit",
        "reports.view",
    ],
    "warehouse_supervisor": [
        "products.view", "products.create", "products.edit", "products.delete", "products.restore",
        "templates.view", "templates.create", "templates.edit", "templates.delete",
        "templates.restore", "templates.set-active",
        "stock-in.view", "stock-in.create", "stock-in.edit", "stock-in.delete", "stock-in.submit",
        "stock-out.view", "stock-out.create", "stock-out.edit", "stock-out.delete", "stock-out.submit",
        "reports.view",
        "users.index", "users.show",
    ],
    "management": [
        "products.view",
        "templates.view",
        "stock-in.view",
        "stock-out.view",
        "reports.view",
        "users.index", "users.show",
        "roles.view",
    ],
}
