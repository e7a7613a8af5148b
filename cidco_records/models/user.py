from sqlalchemy import Column, String, DateTime, Integer, Text
import enum

from cidco_records.core.database import Base


class UserRole(str, enum.Enum):
    """User roles"""
    ADMIN = "admin"
    USER = "user"


class User(Base):
    """Account row in the pre-existing users_react table"""
    __tablename__ = "users_react"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(100), unique=True, index=True, nullable=False)
    email = Column(String(255), index=True, nullable=True)
    name = Column(String(255), nullable=True)
    # Plain text in the existing table, not a database enum
    role = Column(String(20), default=UserRole.USER.value, nullable=False)
    password_hash = Column(Text, nullable=False)

    # Password reset fields
    reset_token = Column(String(64), index=True, nullable=True)
    reset_expires = Column(DateTime, nullable=True)

    @property
    def is_admin(self) -> bool:
        return (self.role or "").lower() == UserRole.ADMIN.value

    def __repr__(self):
        return f"<User {self.username}>"
