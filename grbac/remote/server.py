# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Remote authority server.

Serves the other side of the delegation wire protocol: it reads
``{"id": ..., "permissions": [...], "checkType": ...}`` and answers with the
decision of a local Rbac (or PrincipalRbac, when the body carries a
``type``). A grant is a 200 whose JSON body becomes the caller's claims,
a denial is a 403.

Backed by an RbacEngine, the endpoint instead reads ``requestedAction``
(``allow`` or ``deny``) and ``permissionsGroup`` and always answers 200
with ``{"requestedActionResult": true|false}``.
"""

from typing import Any, Dict, Optional
import logging

from aiohttp import web

from ..core.types import DecisionRequest, coerce_principal_id
from ..errors import (
    InvalidIdentifier,
    PermissionDenied,
    UnknownPrincipalType,
    ValidationError,
)
from ..metrics import DecisionMetrics


logger = logging.getLogger(__name__)

ERROR_PERMISSION_DENIED = 1100
ERROR_INVALID_BODY = 1101
ERROR_INVALID_CHECK_TYPE = 1102
ERROR_INVALID_ACTION = 1102
ERROR_INVALID_PERMISSIONS = 1103
ERROR_INVALID_ID = 1104

DENIED_BODY = {"errorCode": ERROR_PERMISSION_DENIED, "error": "Permission to resource denied"}

ACTION_ALLOW = "allow"
ACTION_DENY = "deny"


def _error(status: int, code: int, message: str) -> web.Response:
    return web.json_response({"errorCode": code, "error": message}, status=status)


def _validation_error(e: ValidationError) -> web.Response:
    if isinstance(e, InvalidIdentifier):
        code = ERROR_INVALID_ID
    elif e.field == "combinator":
        code = ERROR_INVALID_CHECK_TYPE
    else:
        code = ERROR_INVALID_PERMISSIONS
    return _error(400, code, e.message)


def is_rule_engine(rbac: Any) -> bool:
    """Whether rbac answers permit/deny questions rather than authorize()."""
    return hasattr(rbac, "permit") and not hasattr(rbac, "authorize")


class AuthorizationHandler:
    """aiohttp handler deciding delegated requests."""

    def __init__(self, rbac: Any):
        self.rbac = rbac
        self.multi_tenant = hasattr(rbac, "principal_types")
        self.rule_engine = is_rule_engine(rbac)

    async def __call__(self, request: web.Request) -> web.Response:
        try:
            data = await request.json()
        except (ValueError, UnicodeDecodeError):
            return _error(400, ERROR_INVALID_BODY, "Request body must be a JSON object")

        try:
            decision = DecisionRequest.from_wire(data)
        except ValidationError as e:
            if not isinstance(data, dict):
                return _error(400, ERROR_INVALID_BODY, e.message)
            return _validation_error(e)

        if self.rule_engine:
            return await self._engine_decision(data, decision)

        authorization = request.headers.get("Authorization")
        try:
            if self.multi_tenant:
                result = await self.rbac.authorize(
                    decision.principal_id, decision.principal_type,
                    decision.permissions, decision.combinator,
                    authorization=authorization,
                )
            else:
                result = await self.rbac.authorize(
                    decision.principal_id, decision.permissions, decision.combinator,
                    authorization=authorization,
                )
        except ValidationError as e:
            return _validation_error(e)
        except UnknownPrincipalType as e:
            return _error(400, ERROR_INVALID_BODY, e.message)
        except PermissionDenied as e:
            logger.info(f"Denied delegated request for {decision.principal_id}: {e.message}")
            return web.json_response(DENIED_BODY, status=403)

        claims: Dict[str, Any] = {"id": result.principal_id}
        claims.update(result.claims)
        return web.json_response(claims)

    async def _engine_decision(self, data: Dict[str, Any],
                               decision: DecisionRequest) -> web.Response:
        action = data.get("requestedAction") or ACTION_ALLOW
        if not isinstance(action, str) or action.lower() not in (ACTION_ALLOW, ACTION_DENY):
            return _error(400, ERROR_INVALID_ACTION,
                          f"Invalid requested action, must be one of {ACTION_ALLOW}, {ACTION_DENY}")
        group = data.get("permissionsGroup")
        if group is not None and not isinstance(group, str):
            return _error(400, ERROR_INVALID_BODY, "permissionsGroup must be a string")

        try:
            principal_id = coerce_principal_id(decision.principal_id)
            if action.lower() == ACTION_ALLOW:
                result = await self.rbac.permit(principal_id, decision.permissions, group)
            else:
                result = await self.rbac.deny(principal_id, decision.permissions, group)
        except ValidationError as e:
            return _validation_error(e)

        logger.debug(f"{action.lower()} for {principal_id} {decision.permissions}: {result}")
        return web.json_response({"requestedActionResult": result})


def create_authorization_app(rbac: Any, path: str = "/authorize",
                             metrics: Optional[DecisionMetrics] = None) -> web.Application:
    """
    Build an aiohttp application answering delegated decisions.

    Args:
        rbac: Rbac, PrincipalRbac or initialized RbacEngine making the decisions
        path: Route of the decision endpoint
        metrics: When given, also served as text on GET /metrics

    Returns:
        web.Application
    """
    app = web.Application()
    app.router.add_post(path, AuthorizationHandler(rbac))

    if metrics is not None:
        async def metrics_handler(request: web.Request) -> web.Response:
            return web.Response(
                body=metrics.export().encode("utf-8"),
                headers={"Content-Type": metrics.content_type, "Cache-Control": "no-cache"},
            )

        app.router.add_get("/metrics", metrics_handler)

    if hasattr(rbac, "close"):
        async def close_rbac(app: web.Application) -> None:
            await rbac.close()

        app.on_cleanup.append(close_rbac)

    logger.info(f"Authorization app created on {path}")
    return app
