"""
Identity models for the marketplace.

This module defines SQLAlchemy models for:
- Users (members and taskers)
- Roles
- Tasker profiles
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Table, Numeric, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
from typing import Optional
import uuid
import bcrypt
from marketplace.base_service import Base

MEMBER_TASKER_ROLE = "MemberTasker"


def normalize(value: Optional[str]) -> Optional[str]:
    """Lookup key used for case-insensitive username/email/role matching."""
    return value.upper() if value is not None else None


def new_stamp() -> str:
    return str(uuid.uuid4())


# Association table for many-to-many relationship between users and roles
user_roles = Table(
    'user_roles',
    Base.metadata,
    Column('user_id', String(36), ForeignKey('users.id', ondelete="CASCADE"), primary_key=True),
    Column('role_id', Integer, ForeignKey('roles.id', ondelete="CASCADE"), primary_key=True)
)


class User(Base):
    """User model for members and taskers."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_stamp)
    username = Column(String(256), unique=True, nullable=False)
    normalized_username = Column(String(256), unique=True, index=True, nullable=False)
    email = Column(String(256), unique=True, nullable=False)
    normalized_email = Column(String(256), unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=False, default="")
    hashed_password = Column(String, nullable=True)
    is_tasker = Column(Boolean, nullable=False, default=False)
    security_stamp = Column(String(36), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    roles = relationship("Role", secondary=user_roles, back_populates="users", lazy="selectin")
    tasker_profile = relationship(
        "TaskerProfile", back_populates="user", uselist=False,
        cascade="all, delete-orphan", passive_deletes=True
    )

    def __init__(self, **kwargs):
        # Id is assigned up front; profiles reference it before flush
        kwargs.setdefault("id", new_stamp())
        kwargs.setdefault("is_tasker", False)
        kwargs.setdefault("roles", [])
        super().__init__(**kwargs)

    def verify_password(self, password: str) -> bool:
        """Check if provided password matches the stored hash."""
        if not self.hashed_password:
            return False
        try:
            return bcrypt.checkpw(
                password.encode('utf-8'),
                self.hashed_password.encode('utf-8')
            )
        except ValueError:
            return False

    @staticmethod
    def get_password_hash(password: str) -> str:
        """Generate password hash using bcrypt."""
        return bcrypt.hashpw(
            password.encode('utf-8'),
            bcrypt.gensalt()
        ).decode('utf-8')

    def has_role(self, role_name: str) -> bool:
        """Check if user has a specific role."""
        return any(role.normalized_name == normalize(role_name) for role in self.roles)


class Role(Base):
    """Role model for RBAC."""
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(256), unique=True, nullable=False)
    normalized_name = Column(String(256), unique=True, index=True, nullable=False)
    description = Column(String, nullable=True)

    # Relationships
    users = relationship("User", secondary=user_roles, back_populates="roles")


class TaskerProfile(Base):
    """Service-provider profile, one per tasker user."""
    __tablename__ = "tasker_profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    skills = Column(JSON, nullable=False, default=list)
    experience_level = Column(String, nullable=True)
    hourly_rate = Column(Numeric(10, 2), nullable=False, default=0)
    selected_category = Column(String, nullable=True)
    category_id = Column(Integer, nullable=True)

    user = relationship("User", back_populates="tasker_profile")
