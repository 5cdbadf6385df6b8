"""SQLAlchemy ORM models."""

from payment_reconciler.models.base import Base, TimestampMixin
from payment_reconciler.models.payment_session import PaymentSessionRecord

__all__ = [
    "Base",
    "TimestampMixin",
    "PaymentSessionRecord",
]
