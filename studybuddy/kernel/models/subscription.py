"""
Subscription model - the billing collaborator's tier assignment.

Written by the payment webhook; this engine only reads it.
"""

import uuid

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from studybuddy.kernel.models.base import Base, TimestampMixin, generate_uuid


class UserSubscription(Base, TimestampMixin):
    """Current subscription tier for a user."""

    __tablename__ = "user_subscriptions"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=generate_uuid,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(nullable=False, unique=True, index=True)
    tier: Mapped[str] = mapped_column(String(20), nullable=False, default="free")
