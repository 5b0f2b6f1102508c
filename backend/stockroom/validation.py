from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any

from stockroom.errors import FieldErrors
from stockroom.time_utils import parse_iso_date


class ValidationError(ValueError):
    """Single-value coercion problem; callers attach it to a field path."""


@dataclass(frozen=True)
class LineItemInput:
    """One requested (variant, quantity) line of a stock record; index is its position in the request."""
    product_variant_id: int
    quantity: int
    index: int = 0


def coerce_strict_int(value: Any, field: str) -> int:
    """
    Strict integer coercion.

    Accepts ints (not bools) and plain digit strings with an optional leading
    minus. Rejects floats, decimals and scientific notation.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    raise ValidationError(f"{field} must be an integer")


def clean_string(
    payload: dict,
    field: str,
    errors: FieldErrors,
    *,
    max_length: int | None = None,
    required: bool = True,
    path: str | None = None,
) -> str | None:
    """Trimmed string or None; missing/blank required values and overlong values are reported."""
    path = path or field
    raw = payload.get(field)
    if raw is None or (isinstance(raw, str) and raw.strip() == ""):
        if required:
            errors.add(path, f"The {field} field is required.")
        return None
    if not isinstance(raw, str):
        errors.add(path, f"The {field} field must be a string.")
        return None
    value = raw.strip()
    if max_length is not None and len(value) > max_length:
        errors.add(path, f"The {field} field must not be greater than {max_length} characters.")
        return None
    return value


def clean_int(
    payload: dict,
    field: str,
    errors: FieldErrors,
    *,
    minimum: int | None = None,
    required: bool = True,
    path: str | None = None,
) -> int | None:
    path = path or field
    raw = payload.get(field)
    if raw is None or raw == "":
        if required:
            errors.add(path, f"The {field} field is required.")
        return None
    try:
        value = coerce_strict_int(raw, field)
    except ValidationError as e:
        errors.add(path, str(e))
        return None
    if minimum is not None and value < minimum:
        errors.add(path, f"The {field} field must be at least {minimum}.")
        return None
    return value


def clean_date(payload: dict, field: str, errors: FieldErrors, *, required: bool = True) -> date | None:
    raw = payload.get(field)
    if raw is None or (isinstance(raw, str) and raw.strip() == ""):
        if required:
            errors.add(field, f"The {field} field is required.")
        return None
    if not isinstance(raw, str):
        errors.add(field, f"The {field} field must match the format Y-m-d.")
        return None
    try:
        return parse_iso_date(raw)
    except ValueError:
        errors.add(field, f"The {field} field must match the format Y-m-d.")
        return None


def clean_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def clean_id_list(raw: Any, field: str, errors: FieldErrors, *, min_items: int = 1) -> list[int]:
    """
    Validate a list of ids.

    A duplicate id is an error at "<field>.<index>" of the repeated entry,
    never silently dropped.
    """
    if raw is None:
        errors.add(field, f"The {field} field is required.")
        return []
    if not isinstance(raw, list):
        errors.add(field, f"The {field} field must be an array.")
        return []
    if len(raw) < min_items:
        errors.add(field, f"The {field} field must have at least {min_items} items.")
        return []

    ids: list[int] = []
    seen: set[int] = set()
    for index, value in enumerate(raw):
        path = f"{field}.{index}"
        try:
            item_id = coerce_strict_int(value, path)
        except ValidationError as e:
            errors.add(path, str(e))
            continue
        if item_id in seen:
            errors.add(path, f"The {path} field has a duplicate value.")
            continue
        seen.add(item_id)
        ids.append(item_id)
    return ids


def clean_line_items(raw: Any, errors: FieldErrors, *, field: str = "items", min_items: int = 1) -> list[LineItemInput]:
    """
    Validate the shape of stock record lines.

    Each line needs product_variant_id and quantity >= 0. A variant may appear
    only once per record. Variant existence is checked by the caller, keyed on
    each line's index so paths match the submitted list even when earlier
    entries were rejected.
    """
    if raw is None:
        errors.add(field, f"The {field} field is required.")
        return []
    if not isinstance(raw, list):
        errors.add(field, f"The {field} field must be an array.")
        return []
    if len(raw) < min_items:
        errors.add(field, f"The {field} field must have at least {min_items} items.")
        return []

    lines: list[LineItemInput] = []
    seen: set[int] = set()
    for index, entry in enumerate(raw):
        prefix = f"{field}.{index}"
        if not isinstance(entry, dict):
            errors.add(prefix, f"The {prefix} field must be an object.")
            continue
        variant_id = clean_int(entry, "product_variant_id", errors, path=f"{prefix}.product_variant_id")
        quantity = clean_int(entry, "quantity", errors, minimum=0, path=f"{prefix}.quantity")
        if variant_id is None or quantity is None:
            continue
        if variant_id in seen:
            errors.add(f"{prefix}.product_variant_id", "This product variant is already listed.")
            continue
        seen.add(variant_id)
        lines.append(LineItemInput(product_variant_id=variant_id, quantity=quantity, index=index))
    return lines
