"""
User Module - User Model
==========================
Shop customers and admins in a single table.
Registration and login are handled elsewhere; this service only reads users.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.sql import func
from config.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, nullable=False)
    email = Column(String, unique=True, nullable=False, index=True)
    address = Column(String, nullable=True)
    contact = Column(String, nullable=True)
    role = Column(String, default="user", server_default="user", nullable=False)  # "user" | "admin"
    is_active = Column(Boolean, default=True, server_default="true", nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def __repr__(self):
        return f"<User {self.email}>"
