"""
Shared fixtures for grbac tests.
"""

import pytest
from prometheus_client import CollectorRegistry

from grbac.audit import MemoryAuditLogger
from grbac.dal import (
    MemoryRolesSource,
    MemoryUsersSource,
    PermissionRecord,
    RoleRecord,
    UserRecord,
)
from grbac.errors import PermissionDenied
from grbac.metrics import DecisionMetrics


def make_roles():
    update = PermissionRecord(1, "update")
    read = PermissionRecord(2, "read")
    write = PermissionRecord(4, "write")
    read_5 = PermissionRecord(5, "read")
    delete = PermissionRecord(6, "delete")
    return [
        RoleRecord(1, "TEST_ROLE_1", [update, delete]),
        RoleRecord(2, "TEST_ROLE_2", [read, write]),
        RoleRecord(3, "TEST_ROLE_3", [read_5]),
        RoleRecord(4, "TEST_ROLE_1", [update]),
        RoleRecord(5, "TEST_ROLE_1", [read]),
    ]


@pytest.fixture
def roles():
    return make_roles()


@pytest.fixture
def roles_source(roles):
    return MemoryRolesSource(roles)


@pytest.fixture
def users_source(roles):
    return MemoryUsersSource([
        UserRecord(1, [roles[0], roles[2]], {"email": "superman@example.com"}),
        UserRecord(2, [roles[2]], {"email": "batman@example.com"}),
    ])


HELD_PERMISSIONS = {
    0: ["users:create", "users:remove"],
    1: ["users:read"],
}


@pytest.fixture
def get_permissions():
    async def get_permissions(principal_id):
        return HELD_PERMISSIONS.get(principal_id, [])
    return get_permissions


@pytest.fixture
def check_permission():
    """Grants when any requested permission is held, raises otherwise."""
    def check_permission(principal_id, permissions, combinator=None):
        held = HELD_PERMISSIONS.get(principal_id, [])
        if any(p in held for p in permissions):
            return None
        raise PermissionDenied("Inexistent User or Permission",
                               principal_id=principal_id, permissions=permissions)
    return check_permission


@pytest.fixture
def audit_logger():
    return MemoryAuditLogger(max_entries=100)


@pytest.fixture
def metrics():
    return DecisionMetrics(registry=CollectorRegistry())
