# Overview: Permission system package.
# Re-exports all public APIs.

from .categories import PermissionCategory
from .definitions import (
    PERMISSION_DEFINITIONS,
    PRODUCT_PERMISSIONS,
    TEMPLATE_PERMISSIONS,
    STOCK_IN_PERMISSIONS,
    STOCK_OUT_PERMISSIONS,
    REPORT_PERMISSIONS,
    USER_PERMISSIONS,
)
from .roles import ADMIN_ROLE, DEFAULT_ROLES, DEFAULT_ROLE_PERMISSIONS
from .helpers import (
    all_permission_codes,
    permissions_by_category,
    describe_permission,
    unknown_permission_codes,
)

__all__ = [
    "PermissionCategory",
    "PERMISSION_DEFINITIONS",
    "PRODUCT_PERMISSIONS",
    "TEMPLATE_PERMISSIONS",
    "STOCK_IN_PERMISSIONS",
    "STOCK_OUT_PERMISSIONS",
    "REPORT_PERMISSIONS",
    "USER_PERMISSIONS",
    "ADMIN_ROLE",
    "DEFAULT_ROLES",
    "DEFAULT_ROLE_PERMISSIONS",
    "all_permission_codes",
    "permissions_by_category",
    "describe_permission",
    "unknown_permission_codes",
]
