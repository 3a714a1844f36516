# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Declarative base and shared column types for the ORM models."""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Numeric
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from src.utils.datetime import utc_now


class Base(DeclarativeBase):
    """Declarative base for all scoring tables."""

    type_annotation_map = {
        uuid.UUID: PG_UUID(as_uuid=True),
        datetime: DateTime(timezone=True),
        Decimal: Numeric(8, 2),
    }


class UUIDPrimaryKeyMixin:
    """Adds a client-generated UUID primary key."""

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)


class ParentColumnsMixin:
    """Stores a ParentRef as (parent_type, parent_id)."""

    parent_type: Mapped[str] = mapped_column(nullable=False)
    parent_id: Mapped[uuid.UUID] = mapped_column(nullable=False)


class CreatedAtMixin:
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utc_now)
