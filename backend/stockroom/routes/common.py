# Overview: Small request helpers shared by the API blueprints.

from flask import request

from ..errors import ValidationFailed
from ..time_utils import parse_iso_date
from ..validation import clean_bool


DEFAULT_PAGE_SIZE = 15
MAX_PAGE_SIZE = 100


def page_args() -> tuple[int, int]:
    """limit/offset from the query string, clamped."""
    limit = request.args.get("limit", DEFAULT_PAGE_SIZE, type=int)
    offset = request.args.get("offset", 0, type=int)
    if limit < 1:
        limit = 1
    if limit > MAX_PAGE_SIZE:
        limit = MAX_PAGE_SIZE
    if offset < 0:
        offset = 0
    return limit, offset


def date_arg(name: str):
    raw = request.args.get(name)
    try:
        return parse_iso_date(raw)
    except ValueError:
        raise ValidationFailed.single(name, f"The {name} field must match the format Y-m-d.")


def flag_arg(name: str) -> bool:
    return clean_bool(request.args.get(name), default=False)


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationFailed.single("body", "The request body must be a JSON object.")
    return data


def paginated(items, total: int, limit: int, offset: int, **extra) -> dict:
    payload = {
        "items": [item.to_dict() for item in items],
        "count": total,
        "limit": limit,
        "offset": offset,
    }
    payload.update(extra)
    return payload
