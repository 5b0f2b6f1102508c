# Overview: Permission category constants for grouping related permissions.


class PermissionCategory:
    """Permission categories for organization and UI display."""
    PRODUCTS = "PRODUCTS"
    TEMPLATES = "TEMPLATES"
    STOCK_IN = "STOCK_IN"
    STOCK_OUT = "STOCK_OUT"
    REPORTS = "REPORTS"
    USERS = "USERS"
