"""
Role and Permission models plus their join tables.

A Permission means "may perform <action> on <resource>" and is identified by
the (resource, action) pair. Roles bundle permissions; users hold roles.

Both many-to-many links are explicit join tables addressed by id pairs, with
a unique constraint on the pair. There are no relationship() collections:
traversal happens through the query functions in the services, which keeps
the object graph acyclic and avoids lazy loads in async code.

Built-in roles:
  - SuperAdmin: complete control, including creating other roles
  - Admin: administrative access, cannot alter the reserved roles
  - Visitor: the default role handed to every public sign-up
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from userauth.database import Base, utcnow
from userauth.exceptions import BadRequestError


MAX_ROLE_NAME_LENGTH = 20
MAX_DESCRIPTION_LENGTH = 300
MAX_RESOURCE_LENGTH = 15
MAX_ACTION_LENGTH = 15


class CoreRole(str, enum.Enum):
    ADMIN = "Admin"
    SUPER_ADMIN = "SuperAdmin"
    VISITOR = "Visitor"


# Roles that cannot be created, renamed, or handed out by anyone below SuperAdmin
RESERVED_ROLE_NAMES = frozenset({CoreRole.ADMIN.value, CoreRole.SUPER_ADMIN.value})
ADMIN_ROLE_NAMES = frozenset({CoreRole.ADMIN.value, CoreRole.SUPER_ADMIN.value})


class Role(Base):
    __tablename__ = "roles"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(
        String(MAX_ROLE_NAME_LENGTH),
        unique=True,
        nullable=False,
        index=True,
    )
    description: Mapped[str] = mapped_column(String(MAX_DESCRIPTION_LENGTH), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    @classmethod
    def create(cls, name: str, description: str) -> "Role":
        if not name or not name.strip():
            raise BadRequestError("Role name is required", code="role_name_required")
        if len(name) > MAX_ROLE_NAME_LENGTH:
            raise BadRequestError(
                f"Role name cannot exceed {MAX_ROLE_NAME_LENGTH} characters",
                code="role_name_too_long",
            )
        if not description or not description.strip():
            raise BadRequestError("Role description is required", code="role_description_required")
        return cls(id=uuid.uuid4(), name=name.strip(), description=description.strip())


class Permission(Base):
    __tablename__ = "permissions"
    __table_args__ = (
        UniqueConstraint("resource", "action", name="uq_permission_resource_action"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    resource: Mapped[str] = mapped_column(String(MAX_RESOURCE_LENGTH), nullable=False)
    action: Mapped[str] = mapped_column(String(MAX_ACTION_LENGTH), nullable=False)
    description: Mapped[str] = mapped_column(String(MAX_DESCRIPTION_LENGTH), nullable=False)

    @classmethod
    def create(cls, resource: str, action: str, description: str) -> "Permission":
        if not resource or not resource.strip():
            raise BadRequestError("Permission resource is required", code="permission_resource_required")
        if not action or not action.strip():
            raise BadRequestError("Permission action is required", code="permission_action_required")
        if not description or not description.strip():
            raise BadRequestError(
                "Permission description is required", code="permission_description_required"
            )
        return cls(
            id=uuid.uuid4(),
            resource=resource.strip(),
            action=action.strip(),
            description=description.strip(),
        )

    @property
    def key(self) -> str:
        return f"{self.resource}:{self.action}"


class UserRole(Base):
    """Join row: user holds role."""

    __tablename__ = "user_roles"
    __table_args__ = (
        UniqueConstraint("user_id", "role_id", name="uq_user_role"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("roles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )


class RolePermission(Base):
    """Join row: role grants permission."""

    __tablename__ = "role_permissions"
    __table_args__ = (
        UniqueConstraint("role_id", "permission_id", name="uq_role_permission"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    role_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("roles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    permission_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("permissions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
