"""
grbac Demo Application

Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

This demo walks through the decision paths of grbac:
- Rule compilation and compiled-rule decisions
- Conjunction mode
- Flat callback decisions with combinators
- Remote delegation against an in-process authority
- Multi-tenant principal types
- Audit trail and metrics
"""

import asyncio
import sys

from aiohttp import web

from grbac.audit import MemoryAuditLogger
from grbac.authz import RbacEngine
from grbac.core import PrincipalRbac, Rbac
from grbac.dal import MemoryRolesSource, MemoryUsersSource
from grbac.errors import PermissionDenied, RbacError
from grbac.metrics import DecisionMetrics
from grbac.remote import create_authorization_app
from grbac.util import configure_logging


ROLES = {
    "admin": ["users:create", "users:remove", "users:read"],
    "editor": ["articles:write", "articles:read"],
    "reader": ["articles:read"],
}

USERS = {
    1: ["admin"],
    2: ["editor", "reader"],
    3: ["reader"],
}

HELD = {
    1: ["users:read", "users:create"],
    2: ["users:read"],
}


def get_permissions(principal_id):
    return HELD.get(principal_id, [])


async def main():
    """Main demo function"""
    print("grbac Demo Application")
    print("=" * 50)
    print()

    audit_logger = MemoryAuditLogger()
    metrics = DecisionMetrics()

    roles_source = MemoryRolesSource.from_mapping(ROLES)
    users_source = MemoryUsersSource.from_mapping(USERS, roles_source)

    print("Step 1: Rule Compilation")
    print("-" * 40)

    engine = RbacEngine(roles_source, users_source, missing_rule_effect="deny",
                        audit_logger=audit_logger, metrics=metrics)
    rules = await engine.initialize()
    print(f"✓ Compiled {len(rules)} rules")
    for key, rule in rules.items():
        print(f"  - {key}: {', '.join(rule.permissions())}")
    print()

    print("Step 2: Compiled-Rule Decisions")
    print("-" * 40)

    for user_id, permissions in [(1, ["users:remove"]), (3, ["articles:write"]), (2, ["articles:write"])]:
        allowed = await engine.permit(user_id, permissions)
        mark = "✓" if allowed else "✗"
        print(f"{mark} user {user_id} {permissions}: {'permitted' if allowed else 'not permitted'}")
    print()

    print("Step 3: Conjunction Mode")
    print("-" * 40)

    conjunction_engine = RbacEngine(roles_source, users_source, permissions_group="CONJ",
                                    conjunction=True)
    await conjunction_engine.initialize()
    allowed = await conjunction_engine.permit(3, ["users:remove"])
    print("✓ In conjunction mode every role of the group holds the group's permissions")
    print(f"  - reader may users:remove: {allowed}")
    print()

    print("Step 4: Flat Callback Decisions")
    print("-" * 40)

    rbac = Rbac(get_permissions=get_permissions, audit_logger=audit_logger, metrics=metrics)
    checks = [
        (1, ["users:read"], None),
        (1, ["users:read", "users:create"], "AND"),
        (2, ["users:read", "users:create"], "OR"),
        (2, ["users:read", "users:create"], None),
    ]
    for user_id, permissions, combinator in checks:
        try:
            result = await rbac.authorize(user_id, permissions, combinator)
            print(f"✓ user {user_id} {permissions} ({combinator}): granted {list(result.granted)}")
        except PermissionDenied as e:
            print(f"✗ user {user_id} {permissions} ({combinator}): {e.message}")
    print()

    print("Step 5: Remote Delegation")
    print("-" * 40)

    authority = Rbac(get_permissions=get_permissions)
    runner = web.AppRunner(create_authorization_app(authority, metrics=metrics))
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", 0)
    await site.start()
    host, port = runner.addresses[0][:2]
    url = f"http://{host}:{port}/authorize"
    print(f"✓ Authority listening on {url}")

    tenants = PrincipalRbac(
        {
            "users": {"get_permissions": get_permissions},
            "apps": {"remote": {"url": url, "timeout": "5s"}},
        },
        audit_logger=audit_logger,
        metrics=metrics,
    )

    try:
        result = await tenants.authorize(1, "apps", ["users:create"], authorization="Bearer demo")
        print(f"✓ Remote grant for app 1, claims: {result.claims}")

        try:
            await tenants.authorize(2, "apps", ["users:create"])
        except PermissionDenied as e:
            print(f"✓ Remote denial for app 2: {e.message}")

        try:
            await tenants.authorize(1, "robots", ["users:read"])
        except RbacError as e:
            print(f"✓ Unknown principal type rejected: {e.message}")
        print()
    finally:
        await tenants.close()
        await runner.cleanup()

    print("Step 6: Audit Trail and Metrics")
    print("-" * 40)

    granted = await audit_logger.get_events(allowed=True)
    denied = await audit_logger.get_events(allowed=False)
    print(f"✓ Audit events: {len(granted)} granted, {len(denied)} denied")
    for source in ("rules", "local", "remote"):
        print(f"  - {source}: {metrics.get_count(source, True)} granted, "
              f"{metrics.get_count(source, False)} denied")
    print()

    print("Step 7: Cleanup")
    print("-" * 40)

    await rbac.close()
    await authority.close()
    await audit_logger.close()
    print("✓ Resources released")
    print()

    print("Demo completed successfully! 🎉")
    print()
    print("For more usage, see the examples/ directory.")

    return 0


def run():
    """Console script entry point"""
    configure_logging("WARNING")
    try:
        exit_code = asyncio.run(main())
        sys.exit(exit_code)
    except KeyboardInterrupt:
        print("\nDemo interrupted by user")
        sys.exit(1)


if __name__ == "__main__":
    run()
