# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Package dal defines the data sources the decision engine reads roles,
permissions and users from.

Implementations subclass RolesSource and UsersSource; the engine checks
this at construction time.
"""

from .roles import RolesSource
from .users import UsersSource
from .memory import (
    PermissionRecord,
    RoleRecord,
    UserRecord,
    MemoryRolesSource,
    MemoryUsersSource,
)

__all__ = [
    'RolesSource',
    'UsersSource',
    'PermissionRecord',
    'RoleRecord',
    'UserRecord',
    'MemoryRolesSource',
    'MemoryUsersSource',
]
