"""
Tests for remote delegation and the remote authority server.
"""

import asyncio
from contextlib import asynccontextmanager

import pytest
from aiohttp import ClientSession, web
from aiohttp.test_utils import TestClient, TestServer

from grbac import PrincipalRbac, Rbac, RbacEngine
from grbac.errors import (
    InvalidCombinatorCombination,
    PermissionDenied,
    RemoteAuthorizationDenied,
    RemoteNotConfigured,
    RemoteTransportError,
)
from grbac.remote import DENIED_BODY, RemoteAuthClient, create_authorization_app, parse_claims


def make_authority(seen):
    """Remote authority granting users:read and refusing everything else."""

    async def authorize(request):
        seen.append({"headers": request.headers.copy(), "body": await request.json()})
        if request.headers.get("X-Reply") == "text":
            return web.Response(text="granted")
        if request.headers.get("X-Reply") == "empty":
            return web.Response(status=204)
        if request.headers.get("X-Reply") == "list":
            return web.json_response([1, 2])
        if request.headers.get("X-Reply") == "latin1":
            return web.Response(body=b"Acc\xe8s refus\xe9", status=403, content_type="text/html")
        if request.headers.get("X-Reply") == "binary":
            return web.Response(body=b"\xff\xfe ok")
        if request.headers.get("X-Reply") == "slow":
            await asyncio.sleep(0.5)
            return web.json_response({"id": 1})

        body = await request.json()
        if body["permissions"] == ["users:read"]:
            return web.json_response({"id": 1000})
        if body["permissions"] == ["users:create"]:
            return web.json_response({"error": "nope"}, status=401)
        return web.json_response(DENIED_BODY, status=403)

    app = web.Application()
    app.router.add_post("/authorize", authorize)
    return app


@asynccontextmanager
async def authority():
    seen = []
    async with TestServer(make_authority(seen)) as server:
        yield str(server.make_url("/authorize")), seen


@asynccontextmanager
async def engine_authority(roles_source, users_source):
    engine = RbacEngine(roles_source, users_source)
    await engine.initialize()
    async with TestClient(TestServer(create_authorization_app(engine))) as client:
        yield client


class TestRemoteDelegation:
    """Test Rbac with a remote authority."""

    @pytest.mark.asyncio
    async def test_denied_status(self):
        async with authority() as (url, seen):
            async with Rbac(remote={"url": url}) as rbac:
                with pytest.raises(RemoteAuthorizationDenied) as exc_info:
                    await rbac.authorize(1, ["users:create"])

        assert exc_info.value.status_code == 401
        assert exc_info.value.message == "401 - Unauthorized"
        assert isinstance(exc_info.value, PermissionDenied)

    @pytest.mark.asyncio
    async def test_grant_carries_claims(self):
        async with authority() as (url, seen):
            async with Rbac(remote={"url": url}) as rbac:
                result = await rbac.authorize(1, ["users:read"])

        assert result.allowed
        assert result.source == "remote"
        assert result.claims == {"id": 1000}
        assert seen[0]["body"] == {"permissions": ["users:read"], "checkType": None}

    @pytest.mark.asyncio
    async def test_check_type_is_sent(self):
        async with authority() as (url, seen):
            async with Rbac(remote={"url": url}) as rbac:
                with pytest.raises(PermissionDenied):
                    await rbac.authorize(1, ["users:read", "users:create"], "or")

        assert seen[0]["body"] == {"permissions": ["users:read", "users:create"], "checkType": "OR"}

    @pytest.mark.asyncio
    async def test_combinator_checked_before_request(self):
        async with authority() as (url, seen):
            async with Rbac(remote={"url": url}) as rbac:
                with pytest.raises(InvalidCombinatorCombination):
                    await rbac.authorize(1, ["users:read"], "AND")
        assert seen == []

    @pytest.mark.asyncio
    async def test_authorization_forwarded(self):
        async with authority() as (url, seen):
            async with Rbac(remote={"url": url}) as rbac:
                await rbac.authorize(1, ["users:read"], authorization="Bearer abc")
                await rbac.authorize(1, ["users:read"])

        assert seen[0]["headers"]["Authorization"] == "Bearer abc"
        assert "Authorization" not in seen[1]["headers"]

    @pytest.mark.asyncio
    async def test_header_layers(self):
        async with authority() as (url, seen):
            options = {"url": url, "headers": {"X-Tenant": "acme", "Authorization": "Basic configured"}}
            async with Rbac(remote=options) as rbac:
                await rbac.authorize(1, ["users:read"], headers={"x-tenant": "other"})
                await rbac.authorize(1, ["users:read"], authorization="Bearer caller")

        assert seen[0]["headers"]["X-Tenant"] == "other"
        assert seen[0]["headers"]["Authorization"] == "Basic configured"
        assert seen[1]["headers"]["Authorization"] == "Bearer caller"

    @pytest.mark.asyncio
    async def test_overrides_change_endpoint(self, check_permission):
        async with authority() as (url, seen):
            async with Rbac(check_permission=check_permission) as rbac:
                result = await rbac.authorize(1, ["users:read"], overrides={"remote": {"url": url}})

        assert result.source == "remote"
        assert len(seen) == 1

    @pytest.mark.asyncio
    async def test_principal_rbac_sends_id(self, check_permission):
        async with authority() as (url, seen):
            rbac = PrincipalRbac({
                "users": {"check_permission": check_permission},
                "apps": {"remote": {"url": url}},
            })
            async with rbac:
                await rbac.authorize("12", "apps", ["users:read"])
                await rbac.authorize(1, "users", ["users:read"])

        assert len(seen) == 1
        assert seen[0]["body"] == {"permissions": ["users:read"], "checkType": None, "id": 12}

    @pytest.mark.asyncio
    async def test_non_object_bodies_yield_no_claims(self):
        async with authority() as (url, seen):
            async with Rbac(remote={"url": url}) as rbac:
                for reply in ("text", "empty", "list"):
                    result = await rbac.authorize(1, ["users:read"], headers={"X-Reply": reply})
                    assert result.claims == {}

    @pytest.mark.asyncio
    async def test_undecodable_denial_body(self):
        """A non-UTF-8 error page is still a denial."""
        async with authority() as (url, seen):
            async with Rbac(remote={"url": url}) as rbac:
                with pytest.raises(RemoteAuthorizationDenied) as exc_info:
                    await rbac.authorize(1, ["users:read"], headers={"X-Reply": "latin1"})

        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_undecodable_grant_body(self):
        async with authority() as (url, seen):
            async with Rbac(remote={"url": url}) as rbac:
                result = await rbac.authorize(1, ["users:read"], headers={"X-Reply": "binary"})

        assert result.allowed
        assert result.claims == {}

    @pytest.mark.asyncio
    async def test_timeout(self, metrics):
        async with authority() as (url, seen):
            async with Rbac(remote={"url": url, "timeout": 0.1}, metrics=metrics) as rbac:
                with pytest.raises(RemoteTransportError) as exc_info:
                    await rbac.authorize(1, ["users:read"], headers={"X-Reply": "slow"})

        assert exc_info.value.timed_out
        assert metrics.get_summary()["counts"]["remote_timeout"] == 1

    @pytest.mark.asyncio
    async def test_connection_refused(self):
        async with Rbac(remote={"url": "http://127.0.0.1:1/authorize"}) as rbac:
            with pytest.raises(RemoteTransportError) as exc_info:
                await rbac.authorize(1, ["users:read"])

        assert not exc_info.value.timed_out
        assert not isinstance(exc_info.value, PermissionDenied)


class TestRemoteAuthClient:
    """Test the client directly."""

    @pytest.mark.asyncio
    async def test_not_configured(self):
        async with RemoteAuthClient() as client:
            with pytest.raises(RemoteNotConfigured):
                await client.authorize_remote(["users:read"])

    @pytest.mark.asyncio
    async def test_injected_session_is_not_closed(self):
        async with authority() as (url, seen):
            async with ClientSession() as session:
                client = RemoteAuthClient({"url": url}, session=session)
                result = await client.authorize_remote("users:read", principal_id=4)
                await client.close()

                assert not session.closed
                assert result.principal_id == 4
                assert seen[0]["body"]["id"] == 4

    def test_build_headers(self):
        client = RemoteAuthClient({"url": "http://auth.local", "headers": {"authorization": "a"}})
        assert client.build_headers({"X-Trace": "1"}, "b") == {"X-Trace": "1", "Authorization": "b"}
        assert client.build_headers() == {"authorization": "a"}

    def test_parse_claims(self):
        assert parse_claims('{"name": "Clark"}') == {"name": "Clark"}
        assert parse_claims("") == {}
        assert parse_claims("not json") == {}
        assert parse_claims("[1]") == {}
        assert parse_claims(b'{"name": "Clark"}') == {"name": "Clark"}
        assert parse_claims(b"\xff\xfe ok") == {}
        assert parse_claims(b"Acc\xe8s refus\xe9") == {}


class TestAuthorizationServer:
    """Test the remote authority application."""

    @pytest.mark.asyncio
    async def test_grant_and_denial(self, get_permissions):
        app = create_authorization_app(Rbac(get_permissions=get_permissions))
        async with TestClient(TestServer(app)) as client:
            response = await client.post("/authorize", json={"id": 1, "permissions": ["users:read"],
                                                             "checkType": None})
            assert response.status == 200
            assert await response.json() == {"id": 1}

            response = await client.post("/authorize", json={"id": 1, "permissions": ["users:create"]})
            assert response.status == 403
            assert await response.json() == DENIED_BODY

    @pytest.mark.asyncio
    async def test_claims_from_callback(self):
        async def check_permission(principal_id, permissions, combinator):
            return {"name": "Clark"}

        app = create_authorization_app(Rbac(check_permission=check_permission))
        async with TestClient(TestServer(app)) as client:
            response = await client.post("/authorize", json={"id": "3", "permissions": ["a"]})
            assert await response.json() == {"id": 3, "name": "Clark"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body, code", [
        ({"id": 1, "permissions": ["a"], "checkType": "XOR"}, 1102),
        ({"id": 1, "permissions": ["a"], "checkType": "AND"}, 1102),
        ({"id": 1, "permissions": []}, 1103),
        ({"id": 1}, 1103),
        ({"id": "abc", "permissions": ["a"]}, 1104),
        (["a"], 1101),
    ])
    async def test_invalid_requests(self, get_permissions, body, code):
        app = create_authorization_app(Rbac(get_permissions=get_permissions))
        async with TestClient(TestServer(app)) as client:
            response = await client.post("/authorize", json=body)
            assert response.status == 400
            assert (await response.json())["errorCode"] == code

    @pytest.mark.asyncio
    async def test_malformed_json(self, get_permissions):
        app = create_authorization_app(Rbac(get_permissions=get_permissions))
        async with TestClient(TestServer(app)) as client:
            response = await client.post("/authorize", data="{not json",
                                         headers={"Content-Type": "application/json"})
            assert response.status == 400
            assert (await response.json())["errorCode"] == 1101

    @pytest.mark.asyncio
    async def test_multi_tenant(self, check_permission, get_permissions):
        rbac = PrincipalRbac({
            "users": {"check_permission": check_permission},
            "apps": {"get_permissions": get_permissions},
        })
        app = create_authorization_app(rbac)
        async with TestClient(TestServer(app)) as client:
            response = await client.post("/authorize", json={"id": 0, "type": "apps",
                                                             "permissions": ["users:create"]})
            assert response.status == 200

            response = await client.post("/authorize", json={"id": 0, "type": "robots",
                                                             "permissions": ["users:create"]})
            assert response.status == 400
            assert (await response.json())["error"] == "Principal type does not exist"

    @pytest.mark.asyncio
    async def test_metrics_endpoint(self, get_permissions, metrics):
        rbac = Rbac(get_permissions=get_permissions, metrics=metrics)
        app = create_authorization_app(rbac, metrics=metrics)
        async with TestClient(TestServer(app)) as client:
            await client.post("/authorize", json={"id": 1, "permissions": ["users:read"]})
            response = await client.get("/metrics")
            text = await response.text()

        assert response.status == 200
        assert 'grbac_decisions_total{outcome="granted",source="local"} 1.0' in text

    @pytest.mark.asyncio
    async def test_round_trip_with_client(self, get_permissions):
        """A remote Rbac talking to an authority backed by a local Rbac."""
        local = Rbac(get_permissions=get_permissions)
        async with TestServer(create_authorization_app(local)) as server:
            url = str(server.make_url("/authorize"))
            async with PrincipalRbac({"users": {"remote": {"url": url}}}) as remote:
                result = await remote.authorize(1, "users", ["users:read"])
                with pytest.raises(RemoteAuthorizationDenied) as exc_info:
                    await remote.authorize(1, "users", ["users:create"])

        assert result.claims == {"id": 1}
        assert exc_info.value.status_code == 403


class TestRuleEngineServer:
    """Test the remote authority application over compiled rules."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body, expected", [
        ({"id": 1, "permissions": ["update"]}, True),
        ({"id": 2, "permissions": ["update"]}, False),
        ({"id": "2", "permissions": ["read"], "requestedAction": "allow"}, True),
        ({"id": 1, "permissions": ["update"], "requestedAction": "DENY"}, True),
        ({"id": 2, "permissions": ["update"], "requestedAction": "deny"}, False),
        ({"id": 2, "permissions": ["update"], "permissionsGroup": "OTHER"}, True),
    ])
    async def test_requested_action(self, roles_source, users_source, body, expected):
        async with engine_authority(roles_source, users_source) as client:
            response = await client.post("/authorize", json=body)
            data = await response.json()

        assert response.status == 200
        assert data == {"requestedActionResult": expected}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body, code", [
        ({"id": 1, "permissions": ["update"], "requestedAction": "maybe"}, 1102),
        ({"id": 1, "permissions": ["update"], "requestedAction": 3}, 1102),
        ({"id": 1, "permissions": ["update"], "permissionsGroup": ["A"]}, 1101),
        ({"id": 1}, 1103),
        ({"permissions": ["update"]}, 1104),
        ({"id": "abc", "permissions": ["update"]}, 1104),
    ])
    async def test_invalid_requests(self, roles_source, users_source, body, code):
        async with engine_authority(roles_source, users_source) as client:
            response = await client.post("/authorize", json=body)
            data = await response.json()

        assert response.status == 400
        assert data["errorCode"] == code
