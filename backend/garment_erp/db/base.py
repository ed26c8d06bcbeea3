"""SQLAlchemy declarative base and common utilities."""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Integer, func, update
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column
from sqlalchemy.orm.attributes import set_committed_value

from garment_erp.services.errors import ConflictError


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class TimestampMixin:
    """Mixin for created_at and updated_at timestamps."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class VersionMixin:
    """Optimistic locking via a version counter.

    Models using this mixin gain a ``version`` column that starts at 1.
    ``claim_version()`` bumps it with a conditional UPDATE so that two
    writers holding the same version cannot both succeed.
    """

    version: Mapped[int] = mapped_column(Integer, default=1, server_default="1", nullable=False)

    def check_version(self, expected: Optional[int]) -> None:
        """Raise ConflictError if *expected* doesn't match current version."""
        if expected is not None and expected != self.version:
            raise ConflictError(type(self).__name__, self.id, expected)

    def claim_version(self, db: Session, expected: Optional[int] = None) -> int:
        """Compare-and-swap the version counter.

        Uses *expected* when the caller supplied the version it read,
        otherwise the version loaded in this session. Returns the new version.
        """
        self.check_version(expected)
        current = self.version
        model = type(self)
        result = db.execute(
            update(model)
            .where(model.id == self.id, model.version == current)
            .values(version=current + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConflictError(model.__name__, self.id, current)
        set_committed_value(self, "version", current + 1)
        return current + 1
