# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Roles data source interface.

Roles and permissions are opaque records; the source knows how to read
names and ids out of them.
"""

from abc import ABC, abstractmethod
from typing import Any, List, Optional


class RolesSource(ABC):
    """
    Abstract base class for access to roles and their permissions.
    """

    @abstractmethod
    async def find_by_id(self, role_id: Any) -> Optional[Any]:
        """Return a role by id."""
        pass

    @abstractmethod
    async def find_by_name(self, role_name: str) -> Optional[Any]:
        """Return a role by name."""
        pass

    @abstractmethod
    async def get_role_name(self, role: Any) -> str:
        """Return a role's name."""
        pass

    @abstractmethod
    async def get_role_id(self, role: Any) -> Any:
        """Return a role's id."""
        pass

    @abstractmethod
    async def get_role_permissions_by_role_name(self, role_name: str) -> List[Any]:
        """Return the permissions of every role with the given name."""
        pass

    @abstractmethod
    async def get_role_permissions_by_role_id(self, role_id: Any) -> List[Any]:
        """Return the permissions of a role by id."""
        pass

    @abstractmethod
    async def find_roles_by_permission(self, permission: Any) -> List[Any]:
        """Return the roles holding a permission."""
        pass

    @abstractmethod
    async def get_permission_name(self, permission: Any) -> str:
        """Return a permission's name."""
        pass

    @abstractmethod
    async def get_permission_id(self, permission: Any) -> Any:
        """Return a permission's id."""
        pass

    @abstractmethod
    async def find_all_roles(self) -> List[Any]:
        """Return every role in the system."""
        pass

    async def close(self) -> None:
        """Release resources held by the source."""
        pass
