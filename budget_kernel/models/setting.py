"""
Module: budget_kernel.models.setting
Responsibility: Key/value user settings.  The ``timezone`` key holds the
    process-wide IANA zone used for every period boundary computation.
Architecture position: Kernel > Models.  May import from db/ only.
"""

from datetime import datetime

from sqlalchemy import String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from budget_kernel.db.base import Base, UTCDateTime

TIMEZONE_KEY = "timezone"


class UserSetting(Base):
    __tablename__ = "user_settings"

    __table_args__ = (UniqueConstraint("key", name="uq_user_setting_key"),)

    key: Mapped[str] = mapped_column(String(100), nullable=False)

    value: Mapped[str] = mapped_column(String(200), nullable=False)

    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<UserSetting {self.key}={self.value!r}>"
