"""Payment session model."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from payment_reconciler.models.base import Base, TimestampMixin


class PaymentSessionRecord(Base, TimestampMixin):
    """Payment session row shared with the commerce platform.

    The reconciler only ever writes status and data.
    """

    __tablename__ = "payment_session"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    provider_id: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False)
    data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    amount: Mapped[Decimal] = mapped_column(Numeric(20, 6), nullable=False)
    currency_code: Mapped[str] = mapped_column(String(3), nullable=False)

    __table_args__ = (
        Index("ix_payment_session_status_provider", "status", "provider_id"),
    )

