# src/ecoroute/models/user.py
"""Read-side model of the accounts owned by the authentication subsystem."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ecoroute.db.session import Base
from ecoroute.db.time import utcnow

ROLE_COOPERATIVE = "cooperative"
ROLE_ADMIN = "admin"
ROLE_DRIVER = "driver"


class User(Base):
    """Registered account (cooperative, admin or driver).

    The real-time core only reads users: to admit a connection and to label
    the messages it sends.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=ROLE_COOPERATIVE)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    @property
    def is_admin(self) -> bool:
        """Return True when the account carries the admin role."""
        return self.role == ROLE_ADMIN
