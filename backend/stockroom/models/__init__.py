from .lifecycle import Lifecycle, SoftDeleteMixin
from .auth import User, Role, UserRole, Permission, RolePermission, UserPermission, SessionToken
from .security import SecurityEvent
from .catalog import Product, ProductVariant
from .templates import Template, TemplateItem
from .stock import (
    StockInRecord,
    StockInItem,
    StockOutRecord,
    StockOutItem,
    STATUS_DRAFT,
    STATUS_SUBMITTED,
    RECORD_STATUSES,
)

__all__ = [
    'Lifecycle', 'SoftDeleteMixin',
    'User', 'Role', 'UserRole', 'Permission', 'RolePermission', 'UserPermission', 'SessionToken',
    'SecurityEvent',
    'Product', 'ProductVariant',
    'Template', 'TemplateItem',
    'StockInRecord', 'StockInItem', 'StockOutRecord', 'StockOutItem',
    'STATUS_DRAFT', 'STATUS_SUBMITTED', 'RECORD_STATUSES',
]
