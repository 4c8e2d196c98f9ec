"""
Module: drawer_kernel.db.base
Responsibility: Declarative base and audit mixin shared by every drawer ORM
    model.
Architecture position: Kernel > DB.  Imported by model files only; imports
    nothing from outer layers.

Conventions:
    - Primary keys are UUIDs held in SQLAlchemy's portable ``Uuid`` type
      (native UUID on PostgreSQL, CHAR(32) elsewhere).  A caller may assign
      the id before the first flush; the closing service does so, which
      lets a retried insert land on the same row.
    - Money is whole currency units in BigInteger columns.  There is no
      fractional money column.
    - Audit columns come from ``TrackedBase``.  The actor columns are
      nullable because a kiosk session saves without a signed-in user.
"""

from datetime import datetime
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, DateTime, Uuid, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

_TIMESTAMP = DateTime(timezone=True)


class Base(DeclarativeBase):
    """Declarative base: uuid4 primary key, tz-aware datetimes, BigInteger ints."""

    type_annotation_map: ClassVar[dict] = {
        datetime: _TIMESTAMP,
        UUID: Uuid(as_uuid=True),
        int: BigInteger,
    }

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)


class TrackedBase(Base):
    """Abstract model with creation/update timestamps and actor ids."""

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(),
    )
    created_by_id: Mapped[UUID | None] = mapped_column(default=None)
    updated_by_id: Mapped[UUID | None] = mapped_column(default=None)

    def stamp(self, actor_id: UUID | None, *, creating: bool = False) -> None:
        """Record who wrote this row."""
        if creating:
            self.created_by_id = actor_id
        self.updated_by_id = actor_id
