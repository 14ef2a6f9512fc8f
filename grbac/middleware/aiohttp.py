# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
aiohttp boundary adapter.

Wraps handlers so that a decision is made before they run. The principal id
(and type, for a PrincipalRbac) is read from the request, by default from
``request["user"]["id"]`` and ``request["user"]["type"]``, and the inbound
Authorization header is forwarded to remote authorities.

Bound to an RbacEngine, the adapter offers ``allow`` and ``deny`` decorators
over compiled rules instead of ``authorize``.
"""

from typing import Any, Awaitable, Callable, Dict, Mapping, MutableMapping, Optional, Sequence, Union
import functools
import inspect
import json
import logging

from aiohttp import web

from ..core.config import DEFAULT_REQ_ID_PATH, DEFAULT_REQ_TYPE_PATH
from ..core.types import (
    Combinator,
    DecisionResult,
    Principal,
    check_combinator,
    coerce_principal_id,
    normalize_permissions,
)
from ..errors import ConfigurationError, PermissionDenied


logger = logging.getLogger(__name__)

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]

ACTION_ALLOW = "allow"
ACTION_DENY = "deny"


def get_descendant(obj: Any, path: str) -> Any:
    """Follow a dotted path through mappings and attributes; None if absent."""
    current = obj
    for part in path.split("."):
        if current is None:
            return None
        if isinstance(current, Mapping):
            current = current.get(part)
        else:
            current = getattr(current, part, None)
    return current


def permission_denied_response(error: PermissionDenied) -> web.HTTPUnauthorized:
    """401 with a JSON body describing the denial."""
    return web.HTTPUnauthorized(
        text=json.dumps({"error": "Permission denied.", "message": error.message}),
        content_type="application/json",
    )


class AioHttpRbac:
    """
    Handler decorators and middleware bound to an Rbac, PrincipalRbac or RbacEngine.

    Example:
        guard = AioHttpRbac(rbac)

        @guard.authorize(["users:read"])
        async def list_users(request):
            ...

        rules = AioHttpRbac(engine)

        @rules.allow(["update"], group="Credentials")
        async def update_credentials(request):
            ...
    """

    def __init__(self, rbac: Any,
                 get_req_id: Optional[Callable[[web.Request], Any]] = None,
                 get_req_type: Optional[Callable[[web.Request], Any]] = None):
        self.rbac = rbac
        self.multi_tenant = hasattr(rbac, "principal_types")
        self.rule_engine = hasattr(rbac, "permit") and not hasattr(rbac, "authorize")
        id_path = getattr(rbac, "req_id_path", DEFAULT_REQ_ID_PATH)
        type_path = getattr(rbac, "req_type_path", DEFAULT_REQ_TYPE_PATH)
        self.get_req_id = get_req_id or (lambda request: get_descendant(request, id_path))
        self.get_req_type = get_req_type or (lambda request: get_descendant(request, type_path))

    async def check(self, request: web.Request,
                    permissions: Union[str, Sequence[str]],
                    combinator: Union[None, str, Combinator] = None,
                    overrides: Optional[Mapping[str, Any]] = None) -> DecisionResult:
        """
        Decide for the request's principal and record the outcome on the request.

        On a grant ``request["principal"]`` holds the Principal with any
        claims returned by a remote authority, and the claims are also
        merged into ``request["user"]``.

        Raises:
            web.HTTPUnauthorized: If access is denied
        """
        principal_id = self.get_req_id(request)
        principal_type = self.get_req_type(request) if self.multi_tenant else None
        authorization = request.headers.get("Authorization")

        try:
            if self.multi_tenant:
                result = await self.rbac.authorize(
                    principal_id, principal_type, permissions, combinator,
                    authorization=authorization, overrides=overrides or None,
                )
            else:
                result = await self.rbac.authorize(
                    principal_id, permissions, combinator,
                    authorization=authorization, overrides=overrides or None,
                )
        except PermissionDenied as e:
            logger.info(f"{request.method} {request.path} denied for principal {principal_id}")
            raise permission_denied_response(e) from e

        principal = Principal(id=result.principal_id, type=principal_type)
        if principal.id is None:
            principal.id = coerce_principal_id(principal_id)
        principal.merge_claims(result.claims)
        request["principal"] = principal
        request["rbac"] = {"permissions": list(normalize_permissions(permissions))}

        if principal.claims:
            user = request.get("user")
            if isinstance(user, MutableMapping):
                user.update(principal.claims)
            else:
                request["user"] = dict(principal.claims)
        return result

    async def check_rules(self, request: web.Request, permissions: Sequence[str],
                          group: Optional[str] = None,
                          action: str = ACTION_ALLOW) -> None:
        """
        Decide for the request's principal with the bound RbacEngine.

        ``allow`` admits principals the engine permits; ``deny`` turns away
        principals the engine's deny() answers True for. A request without a
        principal id is turned away.

        Raises:
            web.HTTPUnauthorized: If access is denied
        """
        raw_id = self.get_req_id(request)
        if raw_id is None:
            logger.info(f"{request.method} {request.path} denied: no principal id")
            raise permission_denied_response(PermissionDenied(permissions=permissions))

        principal_id = coerce_principal_id(raw_id)
        if action == ACTION_ALLOW:
            allowed = await self.rbac.permit(principal_id, list(permissions), group)
        else:
            allowed = not await self.rbac.deny(principal_id, list(permissions), group)

        if not allowed:
            logger.info(f"{request.method} {request.path} {action} rule refused principal {principal_id}")
            raise permission_denied_response(
                PermissionDenied(principal_id=principal_id, permissions=permissions)
            )

        request["principal"] = Principal(id=principal_id)
        request["rbac"] = {
            "permissions": list(permissions),
            "group": group or self.rbac.config.permissions_group,
        }

    def authorize(self, permissions: Union[str, Sequence[str]],
                  combinator: Union[None, str, Combinator] = None,
                  **overrides) -> Callable[[Handler], Handler]:
        """
        Decorate a handler so it only runs when access is granted.

        Permissions and combinator are validated when the decorator is built.
        """
        self._require_rbac("authorize")
        normalized = normalize_permissions(permissions)
        check_combinator(Combinator.parse(combinator), len(normalized))

        def decorator(handler: Handler) -> Handler:
            @functools.wraps(handler)
            async def wrapper(request: web.Request, *args, **kwargs):
                await self.check(request, permissions, combinator, overrides)
                return await handler(request, *args, **kwargs)
            return wrapper

        return decorator

    def allow(self, permissions: Union[str, Sequence[str]],
              group: Optional[str] = None) -> Callable[[Handler], Handler]:
        """Decorate a handler so it only runs for principals the rules permit."""
        return self._rule_decorator(permissions, group, ACTION_ALLOW)

    def deny(self, permissions: Union[str, Sequence[str]],
             group: Optional[str] = None) -> Callable[[Handler], Handler]:
        """Decorate a handler so it never runs for principals holding the permissions."""
        return self._rule_decorator(permissions, group, ACTION_DENY)

    def _rule_decorator(self, permissions: Union[str, Sequence[str]],
                        group: Optional[str], action: str) -> Callable[[Handler], Handler]:
        if not self.rule_engine:
            raise ConfigurationError(f"{action}() needs an RbacEngine, use authorize()")
        normalized = normalize_permissions(permissions)

        def decorator(handler: Handler) -> Handler:
            @functools.wraps(handler)
            async def wrapper(request: web.Request, *args, **kwargs):
                await self.check_rules(request, normalized, group, action)
                return await handler(request, *args, **kwargs)
            return wrapper

        return decorator

    def middleware(self, permissions: Union[str, Sequence[str]],
                   combinator: Union[None, str, Combinator] = None,
                   **overrides) -> Callable:
        """Application middleware requiring the permissions on every route."""
        self._require_rbac("middleware")
        normalized = normalize_permissions(permissions)
        check_combinator(Combinator.parse(combinator), len(normalized))

        @web.middleware
        async def rbac_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
            await self.check(request, permissions, combinator, overrides)
            return await handler(request)

        return rbac_middleware

    def _require_rbac(self, name: str) -> None:
        if self.rule_engine:
            raise ConfigurationError(f"{name}() needs an Rbac or PrincipalRbac, use allow() or deny()")


def user_middleware(resolver: Callable[[web.Request], Union[Dict[str, Any], Awaitable[Dict[str, Any]], None]]):
    """
    Middleware storing the authenticated principal as ``request["user"]``.

    The resolver receives the request and returns the user mapping (or an
    awaitable of it); authentication itself is up to the resolver.
    """
    @web.middleware
    async def middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
        user = resolver(request)
        if inspect.isawaitable(user):
            user = await user
        if user is not None:
            request["user"] = user
        return await handler(request)

    return middleware
