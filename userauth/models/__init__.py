"""
SQLAlchemy ORM models package.

All models are imported here so that:
  1. Base.metadata knows every table before create_all() runs
  2. Other modules can import from userauth.models directly
"""

from userauth.models.user import User, AuthProvider  # noqa: F401
from userauth.models.role import Role, Permission, UserRole, RolePermission, CoreRole  # noqa: F401
from userauth.models.otp import Otp, OtpPurpose  # noqa: F401
