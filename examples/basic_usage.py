"""
Basic grbac usage example.

This example demonstrates the two local decision paths:
- Compiled rules over in-memory roles and users
- Flat callbacks with the SINGLE / OR / AND combinators
"""

import asyncio

from grbac import Rbac, RbacEngine
from grbac.audit import MemoryAuditLogger
from grbac.dal import MemoryRolesSource, MemoryUsersSource
from grbac.errors import PermissionDenied


PERMISSIONS = {
    1: ["users:read", "users:create"],
    2: ["users:read"],
}


async def get_permissions(user_id):
    return PERMISSIONS.get(user_id, [])


async def basic_example():
    """Demonstrate basic grbac usage"""
    print("Basic grbac Example")
    print("=" * 30)

    # 1. Compile rules from a roles source
    roles = MemoryRolesSource.from_mapping({
        "admin": ["update", "delete", "read"],
        "reader": ["read"],
    })
    users = MemoryUsersSource.from_mapping({1: ["admin"], 2: ["reader"]}, roles)
    engine = RbacEngine(roles, users)
    rules = await engine.initialize()
    print(f"✓ Compiled {len(rules)} rules: {', '.join(rules)}")

    # 2. Decide with compiled rules
    print(f"✓ admin may delete: {await engine.permit(1, ['delete'])}")
    print(f"✓ reader may delete: {await engine.permit(2, ['delete'])}")

    # 3. Decide with a flat callback
    audit_logger = MemoryAuditLogger()
    async with Rbac(get_permissions=get_permissions, audit_logger=audit_logger) as rbac:
        result = await rbac.authorize(1, ["users:read", "users:create"], "AND")
        print(f"✓ User 1 granted: {', '.join(result.granted)}")

        try:
            await rbac.authorize(2, ["users:create", "users:remove"], "OR")
        except PermissionDenied as e:
            print(f"✓ User 2 denied: {e.message}")

    # 4. Check audit logs
    events = await audit_logger.get_events()
    print(f"✓ Audit events logged: {len(events)}")


if __name__ == "__main__":
    asyncio.run(basic_example())
