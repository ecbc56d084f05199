from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func


class ActorStampMixin:
    """
    Who/when columns for rows mutated through the discount services.
    `created_at` is written by the service so creation order is stable
    even when two rows land in the same clock second.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=func.now(),
        nullable=False,
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
    created_by: Mapped[str] = mapped_column(String(255), nullable=False)
    last_changed_by: Mapped[str] = mapped_column(String(255), nullable=False)
