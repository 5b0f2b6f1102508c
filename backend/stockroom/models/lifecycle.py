from __future__ import annotations

import enum

from ..extensions import db
from stockroom.time_utils import utcnow


class Lifecycle(str, enum.Enum):
    """Soft-delete state. Purge (row removal) is a separate, irreversible operation."""
    ACTIVE = "active"
    TOMBSTONED = "tombstoned"


class SoftDeleteMixin:
    """
    Tombstone support for catalog and template rows.

    deleted_at is the single source of truth; lifecycle is derived from it.
    """
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)

    @property
    def lifecycle(self) -> Lifecycle:
        return Lifecycle.TOMBSTONED if self.deleted_at is not None else Lifecycle.ACTIVE

    @property
    def is_tombstoned(self) -> bool:
        return self.lifecycle is Lifecycle.TOMBSTONED

    def tombstone(self, at=None) -> None:
        self.deleted_at = at or utcnow()

    def restore(self) -> None:
        self.deleted_at = None

    @classmethod
    def visible(cls, query, *, with_trashed: bool = False, only_trashed: bool = False):
        """Apply the trashed filter used by listing and lookup endpoints."""
        if only_trashed:
            return query.filter(cls.deleted_at.isnot(None))
        if with_trashed:
            return query
        return query.filter(cls.deleted_at.is_(None))
