# Overview: Error taxonomy shared by services and translated to HTTP responses at the request boundary.

from __future__ import annotations

from typing import Iterable


class AuthorizationDenied(Exception):
    """Principal lacks the permission or the self-access right for an action."""

    def __init__(self, action: str | None = None, message: str = "Permission denied"):
        super().__init__(message)
        self.action = action
        self.message = message


class ValidationFailed(Exception):
    """
    Field-keyed validation failure.

    errors maps a field path (e.g. "items.2.quantity") to one or more
    human-readable messages. Business-rule violations (non-draft status,
    insufficient stock, template still in use) are reported the same way.
    """

    def __init__(self, errors: dict[str, Iterable[str]], message: str = "The given data was invalid."):
        super().__init__(message)
        self.message = message
        self.errors: dict[str, list[str]] = {k: list(v) for k, v in errors.items()}

    @classmethod
    def single(cls, field: str, message: str) -> "ValidationFailed":
        return cls({field: [message]})


class NotFound(Exception):
    """Referenced entity does not exist or is not visible under the current filters."""

    def __init__(self, entity: str, entity_id=None):
        super().__init__(f"{entity} not found")
        self.entity = entity
        self.entity_id = entity_id


class FieldErrors:
    """Accumulates field errors so a whole payload can be reported at once."""

    def __init__(self):
        self._errors: dict[str, list[str]] = {}

    def add(self, field: str, message: str) -> None:
        self._errors.setdefault(field, []).append(message)

    def __bool__(self) -> bool:
        return bool(self._errors)

    def __contains__(self, field: str) -> bool:
        return field in self._errors

    def raise_if_any(self) -> None:
        if self._errors:
            raise ValidationFailed(self._errors)
