# Overview: Lookups over the static permission catalog.

from .definitions import PERMISSION_DEFINITIONS


def all_permission_codes() -> list[str]:
    return [code for code, _name, _description, _category in PERMISSION_DEFINITIONS]


def permissions_by_category() -> dict[str, list[str]]:
    """Category -> permission codes, in definition order."""
    grouped: dict[str, list[str]] = {}
    for code, _name, _description, category in PERMISSION_DEFINITIONS:
        grouped.setdefault(category, []).append(code)
    return grouped


def describe_permission(code: str) -> dict | None:
    for perm_code, name, description, category in PERMISSION_DEFINITIONS:
        if perm_code == code:
            return {"code": perm_code, "name": name, "description": description, "category": category}
    return None


def unknown_permission_codes(codes) -> list[str]:
    """Codes that are not part of the catalog (typos in role maps, CLI input)."""
    known = set(all_permission_codes())
    return [code for code in codes if code not in known]
