# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
In-memory roles and users sources for development and testing.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional
import asyncio
import itertools
import logging

from .roles import RolesSource
from .users import UsersSource


logger = logging.getLogger(__name__)


@dataclass
class PermissionRecord:
    """A stored permission."""
    id: Any
    name: str


@dataclass
class RoleRecord:
    """A stored role. Several records may share one name."""
    id: Any
    name: str
    permissions: List[PermissionRecord] = field(default_factory=list)


@dataclass
class UserRecord:
    """A stored user and its roles, in priority order."""
    id: Any
    roles: List[RoleRecord] = field(default_factory=list)
    attributes: Dict[str, Any] = field(default_factory=dict)


class MemoryRolesSource(RolesSource):
    """
    Roles source backed by a list of RoleRecord.
    """

    def __init__(self, roles: Optional[Iterable[RoleRecord]] = None):
        self._roles: List[RoleRecord] = list(roles or [])
        self._lock = asyncio.Lock()

    @classmethod
    def from_mapping(cls, roles: Mapping[str, Iterable[str]]) -> "MemoryRolesSource":
        """
        Build a source from ``{role_name: [permission_name, ...]}``.

        Permission ids are assigned per distinct name.
        """
        permission_ids: Dict[str, int] = {}
        counter = itertools.count(1)
        records = []
        for role_id, (role_name, permission_names) in enumerate(roles.items(), start=1):
            permissions = []
            for name in permission_names:
                if name not in permission_ids:
                    permission_ids[name] = next(counter)
                permissions.append(PermissionRecord(id=permission_ids[name], name=name))
            records.append(RoleRecord(id=role_id, name=role_name, permissions=permissions))
        return cls(records)

    @property
    def roles(self) -> List[RoleRecord]:
        return list(self._roles)

    async def add_role(self, role: RoleRecord) -> None:
        """Add a role record."""
        async with self._lock:
            self._roles.append(role)
        logger.debug(f"Added role {role.name} ({role.id})")

    async def find_by_id(self, role_id: Any) -> Optional[RoleRecord]:
        return next((r for r in self._roles if r.id == role_id), None)

    async def find_by_name(self, role_name: str) -> Optional[RoleRecord]:
        return next((r for r in self._roles if r.name == role_name), None)

    async def get_role_name(self, role: RoleRecord) -> str:
        return role.name

    async def get_role_id(self, role: RoleRecord) -> Any:
        return role.id

    async def get_role_permissions_by_role_name(self, role_name: str) -> List[PermissionRecord]:
        return [p for r in self._roles if r.name == role_name for p in r.permissions]

    async def get_role_permissions_by_role_id(self, role_id: Any) -> List[PermissionRecord]:
        role = await self.find_by_id(role_id)
        return list(role.permissions) if role else []

    async def find_roles_by_permission(self, permission: Any) -> List[RoleRecord]:
        name = permission.name if isinstance(permission, PermissionRecord) else permission
        return [r for r in self._roles if any(p.name == name for p in r.permissions)]

    async def get_permission_name(self, permission: PermissionRecord) -> str:
        return permission.name

    async def get_permission_id(self, permission: PermissionRecord) -> Any:
        return permission.id

    async def find_all_roles(self) -> List[RoleRecord]:
        return list(self._roles)


class MemoryUsersSource(UsersSource):
    """
    Users source backed by a list of UserRecord.
    """

    def __init__(self, users: Optional[Iterable[UserRecord]] = None):
        self._users: Dict[Any, UserRecord] = {u.id: u for u in (users or [])}
        self._lock = asyncio.Lock()

    @classmethod
    def from_mapping(cls, users: Mapping[Any, Iterable[str]],
                     roles_source: MemoryRolesSource) -> "MemoryUsersSource":
        """
        Build a source from ``{user_id: [role_name, ...]}``, resolving role
        names against the first matching record of ``roles_source``.
        """
        by_name: Dict[str, RoleRecord] = {}
        for role in roles_source.roles:
            by_name.setdefault(role.name, role)

        records = []
        for user_id, role_names in users.items():
            roles = [by_name[name] for name in role_names if name in by_name]
            records.append(UserRecord(id=user_id, roles=roles))
        return cls(records)

    async def add_user(self, user: UserRecord) -> None:
        """Add or replace a user record."""
        async with self._lock:
            self._users[user.id] = user

    async def find_user_by_id(self, user_id: Any) -> Optional[UserRecord]:
        return self._users.get(user_id)

    async def get_user_roles_by_user_id(self, user_id: Any) -> List[RoleRecord]:
        user = self._users.get(user_id)
        return list(user.roles) if user else []
