"""User model (account store shared with the portal UI)."""

import enum
import uuid
from datetime import UTC, datetime

from sqlalchemy import Boolean, Column, DateTime, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from ..database.base import Base


class UserRole(enum.StrEnum):
    ADMIN = "admin"
    MANAGER = "manager"
    SUPPLIER = "supplier"
    USER = "user"


class User(Base):
    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=True, index=True)
    nama = Column(String(255), default="")
    role = Column(String(20), default=UserRole.USER, index=True)
    email_verified = Column(Boolean, default=False)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
    )

    materials = relationship("MaterialControl", back_populates="owner")
