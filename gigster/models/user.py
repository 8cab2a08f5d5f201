"""User model."""

import enum

from sqlalchemy import Boolean, Enum, String
from sqlalchemy.orm import Mapped, mapped_column

from gigster.models.base import Base, TimestampMixin


class UserRole(enum.Enum):
    """Roles recognised by the permission checks."""

    ADMIN = "admin"
    USER = "user"


class User(Base, TimestampMixin):
    """An operator of the workspace (owner of documents, assignee of tasks)."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255))
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole), default=UserRole.USER, nullable=False
    )
    notification_email: Mapped[str | None] = mapped_column(String(255))
    phone: Mapped[str | None] = mapped_column(String(32))
    email_opt_in: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    sms_opt_in: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def contact_email(self) -> str | None:
        """Address notifications should go to, if the user opted in."""
        if not self.email_opt_in:
            return None
        return self.notification_email or self.email
