"""
Request models for the identity endpoints.
"""
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, Field


class RegisterRequest(BaseModel):
    """Model for member registration."""
    full_name: str
    email: str
    username: str
    password: str


class TaskerRegisterRequest(BaseModel):
    """Model for tasker registration."""
    username: str
    email: str
    full_name: str
    password: str
    skills: List[str] = Field(default_factory=list)
    experience_level: Optional[str] = None
    hourly_rate: Decimal = Field(default=Decimal("0"), ge=0, max_digits=10, decimal_places=2)
    selected_category: Optional[str] = None
    category_id: Optional[int] = None


class LoginRequest(BaseModel):
    """Model for user login. ``username`` may also be an email address."""
    username: str
    password: str
