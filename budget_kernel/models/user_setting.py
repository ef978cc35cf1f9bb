"""
Module: budget_kernel.models.user_setting
Responsibility: Process-wide key/value settings (currently only ``timezone``).
"""

from datetime import datetime

from sqlalchemy import String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from budget_kernel.db.base import Base
from budget_kernel.db.types import UTCDateTime

TIMEZONE_KEY = "timezone"


class UserSetting(Base):
    __tablename__ = "user_settings"

    __table_args__ = (UniqueConstraint("key", name="uq_user_setting_key"),)

    key: Mapped[str] = mapped_column(String(100), nullable=False)

    value: Mapped[str] = mapped_column(String(4000), nullable=False)

    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<UserSetting {self.key}={self.value!r}>"
