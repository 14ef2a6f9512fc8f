# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Flat and multi-tenant authorization.

Rbac decides a request either with a caller-supplied callback or by
delegating to a remote authority. PrincipalRbac keeps one configuration per
principal type and dispatches on the type given with each request.
"""

from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Union
import inspect
import logging

from aiohttp import ClientSession

from ..audit import AuditLogger, DecisionEvent
from ..authz.combinators import evaluate_combinator
from ..errors import (
    ConfigurationError,
    PermissionDenied,
    SourceError,
    UnknownPrincipalType,
)
from ..metrics import DecisionMetrics
from ..remote.client import RemoteAuthClient
from .config import DEFAULT_REQ_ID_PATH, DEFAULT_REQ_TYPE_PATH, RbacConfig, layer_options
from .types import (
    Combinator,
    DecisionRequest,
    DecisionResult,
    PrincipalId,
    coerce_principal_id,
)


logger = logging.getLogger(__name__)

Options = Union[RbacConfig, Mapping[str, Any]]


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class Rbac:
    """
    Flat callback or remote authorization for a single principal type.

    Example:
        rbac = Rbac(get_permissions=lambda user_id: ["users:read"])
        await rbac.authorize(1, ["users:read"])
    """

    def __init__(self, config: Optional[Options] = None, *,
                 audit_logger: Optional[AuditLogger] = None,
                 metrics: Optional[DecisionMetrics] = None,
                 session: Optional[ClientSession] = None,
                 **options):
        if config is None:
            config = RbacConfig.from_dict(options)
        elif isinstance(config, Mapping):
            config = RbacConfig.from_dict(layer_options(config, options))
        elif not isinstance(config, RbacConfig):
            raise ConfigurationError("Invalid config value: must be an RbacConfig or a mapping")
        elif options:
            config = config.merged(options)
        config.validate()

        self.config = config
        self.audit_logger = audit_logger
        self.metrics = metrics
        self.remote = RemoteAuthClient(session=session, metrics=metrics)

        mode = "remote" if config.is_remote else "local"
        logger.info(f"Rbac initialized ({mode} decisions)")

    @property
    def req_id_path(self) -> str:
        return self.config.req_id_path

    @property
    def req_type_path(self) -> str:
        return self.config.req_type_path

    @property
    def aiohttp(self):
        """Boundary adapter for aiohttp handlers bound to this instance."""
        from ..middleware.aiohttp import AioHttpRbac
        return AioHttpRbac(self)

    async def authorize(
        self,
        principal_id: PrincipalId,
        permissions: Union[str, Sequence[str]],
        combinator: Union[None, str, Combinator] = None,
        *,
        headers: Optional[Mapping[str, str]] = None,
        authorization: Optional[str] = None,
        overrides: Optional[Options] = None,
    ) -> DecisionResult:
        """
        Decide whether a principal holds the requested permissions.

        Args:
            principal_id: Numeric id or numeric string
            permissions: A permission or a list of permissions
            combinator: None, "SINGLE", "OR" or "AND"
            headers: Extra headers for remote delegation
            authorization: Authorization header value for remote delegation
            overrides: Options layered over the configuration for this call

        Returns:
            DecisionResult: The grant, with claims from the decider if any

        Raises:
            InvalidIdentifier: If principal_id is not a number
            ValidationError: If permissions or combinator are malformed
            PermissionDenied: If access is denied
        """
        return await self._authorize(principal_id, permissions, combinator,
                                     headers=headers, authorization=authorization,
                                     overrides=overrides)

    async def _authorize(self, principal_id, permissions, combinator=None, *,
                         headers=None, authorization=None, overrides=None,
                         principal_type: Optional[str] = None) -> DecisionResult:
        principal_id = coerce_principal_id(principal_id)
        request = DecisionRequest(
            principal_id=principal_id,
            permissions=permissions,
            combinator=combinator,
            principal_type=principal_type,
        )
        config = self.config.merged(overrides) if overrides else self.config

        source = "remote" if config.is_remote else "local"
        try:
            if self.metrics:
                with self.metrics.timer(source):
                    result = await self._decide(config, request, headers, authorization)
            else:
                result = await self._decide(config, request, headers, authorization)
        except PermissionDenied as e:
            logger.debug(f"Denied {request.permissions} to principal {principal_id}: {e.message}")
            await self._record(request, False, source, e.message)
            raise

        logger.debug(f"Granted {request.permissions} to principal {principal_id}")
        await self._record(request, True, source)
        return result

    async def _decide(self, config: RbacConfig, request: DecisionRequest,
                      headers: Optional[Mapping[str, str]],
                      authorization: Optional[str]) -> DecisionResult:
        if config.is_remote:
            return await self.remote.authorize_remote(
                request.permissions,
                request.combinator,
                headers=headers,
                authorization=authorization,
                principal_id=request.principal_id if request.principal_type else None,
                config=config.remote,
            )

        if config.check_permission is not None:
            return await self._check_permission(config.check_permission, request)

        return await self._check_held_permissions(config.get_permissions, request, config.strict_and)

    async def _check_permission(self, check_permission: Callable[..., Any],
                                request: DecisionRequest) -> DecisionResult:
        outcome = await _maybe_await(
            check_permission(request.principal_id, list(request.permissions), request.combinator)
        )
        if outcome is False:
            raise PermissionDenied(principal_id=request.principal_id,
                                   permissions=request.permissions)

        return DecisionResult(
            allowed=True,
            principal_id=request.principal_id,
            granted=tuple(request.permissions),
            claims=dict(outcome) if isinstance(outcome, Mapping) else {},
        )

    async def _check_held_permissions(self, get_permissions: Callable[..., Any],
                                      request: DecisionRequest,
                                      strict_and: bool) -> DecisionResult:
        held = await _maybe_await(get_permissions(request.principal_id))
        if held is None:
            held = []
        if isinstance(held, str) or not isinstance(held, (list, tuple, set, frozenset)):
            raise SourceError("get_permissions must return a list of permission names")

        granted = evaluate_combinator(request.permissions, held, request.combinator, strict_and)
        if not granted:
            raise PermissionDenied(principal_id=request.principal_id,
                                   permissions=request.permissions)

        return DecisionResult(
            allowed=True,
            principal_id=request.principal_id,
            granted=tuple(granted),
        )

    async def _record(self, request: DecisionRequest, allowed: bool,
                      source: str, reason: str = "") -> None:
        if self.metrics:
            self.metrics.record_decision(source, allowed)
        if self.audit_logger:
            await self.audit_logger.log(DecisionEvent(
                principal_id=request.principal_id,
                principal_type=request.principal_type,
                permissions=list(request.permissions),
                combinator=request.combinator.value if request.combinator else None,
                allowed=allowed,
                source=source,
                reason=reason,
            ))

    async def close(self) -> None:
        """Release the remote client's session."""
        await self.remote.close()

    async def __aenter__(self) -> "Rbac":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


class PrincipalRbac:
    """
    Authorization for several principal types, each configured separately.

    Mapping configurations are layered over ``defaults``; RbacConfig
    instances are used as given.

    Example:
        rbac = PrincipalRbac({
            "users": {"check_permission": check},
            "apps": {"remote": {"url": "http://auth.local/authorize"}},
        })
        await rbac.authorize(1, "users", ["users:read"])
    """

    def __init__(self, principals: Mapping[str, Options],
                 defaults: Optional[Mapping[str, Any]] = None, *,
                 audit_logger: Optional[AuditLogger] = None,
                 metrics: Optional[DecisionMetrics] = None,
                 session: Optional[ClientSession] = None):
        if not isinstance(principals, Mapping) or not principals:
            raise ConfigurationError("Invalid principals value: at least one principal type is required")
        if defaults is not None and not isinstance(defaults, Mapping):
            raise ConfigurationError("Invalid defaults value: must be a mapping")

        self.defaults = dict(defaults or {})
        self._principals: Dict[str, Rbac] = {}
        for principal_type, options in principals.items():
            if not isinstance(principal_type, str) or not principal_type:
                raise ConfigurationError("Invalid principal type: must be a non-empty string")
            if isinstance(options, Mapping):
                config = RbacConfig.from_dict(layer_options(self.defaults, options))
            elif isinstance(options, RbacConfig):
                config = options
            else:
                raise ConfigurationError(
                    f"Invalid configuration for principal type {principal_type}: must be a mapping"
                )
            self._principals[principal_type] = Rbac(
                config, audit_logger=audit_logger, metrics=metrics, session=session
            )

        logger.info(f"PrincipalRbac initialized for types: {', '.join(self._principals)}")

    @property
    def principal_types(self):
        return list(self._principals)

    @property
    def req_id_path(self) -> str:
        return self.defaults.get("req_id_path", DEFAULT_REQ_ID_PATH)

    @property
    def req_type_path(self) -> str:
        return self.defaults.get("req_type_path", DEFAULT_REQ_TYPE_PATH)

    @property
    def aiohttp(self):
        """Boundary adapter for aiohttp handlers bound to this instance."""
        from ..middleware.aiohttp import AioHttpRbac
        return AioHttpRbac(self)

    def get(self, principal_type: str) -> Rbac:
        """The Rbac configured for a principal type."""
        rbac = self._principals.get(principal_type)
        if rbac is None:
            raise UnknownPrincipalType(principal_type)
        return rbac

    async def authorize(
        self,
        principal_id: PrincipalId,
        principal_type: str,
        permissions: Union[str, Sequence[str]],
        combinator: Union[None, str, Combinator] = None,
        *,
        headers: Optional[Mapping[str, str]] = None,
        authorization: Optional[str] = None,
        overrides: Optional[Options] = None,
    ) -> DecisionResult:
        """
        Decide for a principal of a given type.

        The id is validated before the type is looked up. Remote requests
        carry the principal id in the body.

        Raises:
            InvalidIdentifier: If principal_id is not a number
            UnknownPrincipalType: If no configuration exists for the type
            PermissionDenied: If access is denied
        """
        coerce_principal_id(principal_id)
        rbac = self.get(principal_type)
        return await rbac._authorize(principal_id, permissions, combinator,
                                     headers=headers, authorization=authorization,
                                     overrides=overrides, principal_type=principal_type)

    async def close(self) -> None:
        for rbac in self._principals.values():
            await rbac.close()

    async def __aenter__(self) -> "PrincipalRbac":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
