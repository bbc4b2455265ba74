"""
Module: policy_kernel.db.base
Responsibility: Declarative base class for all SQLAlchemy ORM models.  Provides
    the surrogate primary key convention and the type annotation map for
    consistent column types.
Architecture position: Kernel > DB.  This is the lowest-level import target
    within the kernel.  ALL model files import from here.  This module MUST NOT
    import from models/, repositories/, services/, or outer layers.

Invariants enforced:
    - Surrogate integer keys: every row gets an autoincrementing ``id``.  Rows
      are therefore ordered by insertion, which is the creation order used as
      the final trigger-matching tie-break.  Domain ids (``workflow_...``) are
      separate unique string columns.
    - Decimal precision: Python Decimal maps to Numeric(38, 9).  NEVER use
      float for monetary amounts or risk scores.
    - Timestamps are always timezone-aware.

Failure modes:
    - IntegrityError on duplicate domain ids (unique constraints on each model).
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, ClassVar

from sqlalchemy import JSON, DateTime, Integer, Numeric, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetime that survives backends without tz support.

    Contract:
        SQLite drops tzinfo on the way back.  Values are stored as given and
        re-tagged as UTC when the backend returns a naive datetime.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_result_value(self, value, dialect):
        """Attach UTC to naive datetimes returned by the driver."""
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Guarantees:
        - id is an autoincrementing Integer primary key (insertion order).
        - Decimal maps to Numeric(38, 9).
        - datetime maps to UTCDateTime -- always timezone-aware.
        - dict maps to JSON.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: UTCDateTime(),
        dict[str, Any]: JSON,
        str: String(255),
    }

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )
