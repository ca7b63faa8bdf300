from sqlalchemy import Column, DateTime, String
from utils import local_now


class TimestampMixin:
    """Mixin that provides created/updated timestamps and user info.

    This is the minimal mixin used for most models. It does NOT include soft-delete
    columns so models can safely be deleted and recreated without unique-constraint
    collisions.
    """
    # DateTime(timezone=True) ensures the timezone info is persisted in the database.
    created_at = Column(DateTime(timezone=True), default=local_now)
    updated_at = Column(DateTime(timezone=True), onupdate=local_now)
    created_by = Column(String, nullable=True)
    updated_by = Column(String, nullable=True)


class SoftDeleteMixin:
    """Mixin for soft-delete columns (deleted_at, deleted_by).

    Apply this only to models whose rows are referenced by immutable history
    (materials referenced by ledger entries). The session-level filter in
    `database.add_soft_delete_filter` hides rows where deleted_at is set.
    """
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    deleted_by = Column(String, nullable=True)


class AuditMixin(TimestampMixin, SoftDeleteMixin):
    """Timestamps + soft-delete."""
    pass
