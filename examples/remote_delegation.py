"""
Remote delegation example.

Runs a remote authority and an aiohttp service guarded by it:
- The authority answers decisions from a local Rbac
- The service delegates each decision and receives claims
"""

import asyncio

from aiohttp import ClientSession, web

from grbac import PrincipalRbac, Rbac
from grbac.middleware import AioHttpRbac, user_middleware
from grbac.remote import create_authorization_app


PERMISSIONS = {
    1: ["users:read"],
}


def check_permission(user_id, permissions, combinator):
    held = PERMISSIONS.get(user_id, [])
    if not any(p in held for p in permissions):
        return False
    return {"name": f"user-{user_id}"}


async def start(app, port=0):
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", port)
    await site.start()
    host, port = runner.addresses[0][:2]
    return runner, f"http://{host}:{port}"


async def remote_example():
    """Demonstrate remote delegation through an aiohttp service"""
    print("Remote Delegation Example")
    print("=" * 30)

    # 1. Start the authority
    authority, authority_url = await start(
        create_authorization_app(Rbac(check_permission=check_permission))
    )
    print(f"✓ Authority listening on {authority_url}")

    # 2. Start a service delegating to it
    rbac = PrincipalRbac({"users": {"remote": {"url": f"{authority_url}/authorize", "timeout": "2s"}}})
    guard = AioHttpRbac(rbac)

    @guard.authorize(["users:read"])
    async def profile(request):
        return web.json_response(request["user"])

    def resolve_user(request):
        return {"id": request.query.get("id"), "type": "users"}

    app = web.Application(middlewares=[user_middleware(resolve_user)])
    app.router.add_get("/profile", profile)
    service, service_url = await start(app)
    print(f"✓ Service listening on {service_url}")

    try:
        # 3. Call the service
        async with ClientSession() as session:
            for user_id in (1, 2):
                async with session.get(f"{service_url}/profile", params={"id": str(user_id)}) as response:
                    print(f"✓ User {user_id}: {response.status} {await response.text()}")
    finally:
        # 4. Cleanup
        await service.cleanup()
        await authority.cleanup()
        await rbac.close()
        print("✓ Servers stopped")


if __name__ == "__main__":
    asyncio.run(remote_example())
