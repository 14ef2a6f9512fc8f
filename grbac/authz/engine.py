# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Compiled-rule decision engine.

The engine compiles its roles source into a RuleIndex once, then answers
permit/deny questions by resolving a principal's roles through the users
source and checking each role's rule in order.
"""

from typing import Any, List, Optional, Sequence
import asyncio
import logging

from ..audit import AuditLogger, DecisionEvent
from ..core.config import EngineConfig
from ..core.types import DEFAULT_PERMISSIONS_GROUP, Effect
from ..dal.roles import RolesSource
from ..dal.users import UsersSource
from ..errors import (
    ConfigurationError,
    EngineNotReady,
    RbacError,
    SourceError,
    ValidationError,
)
from ..metrics import DecisionMetrics
from ..rules.compiler import RuleCompiler
from ..rules.policy import evaluate_rule
from ..rules.types import RuleIndex


logger = logging.getLogger(__name__)


class RbacEngine:
    """
    Role-based decisions over a compiled rule index.

    Example:
        engine = RbacEngine(roles_source, users_source)
        await engine.initialize()
        allowed = await engine.permit(1, ["update"])
    """

    def __init__(
        self,
        roles_source: RolesSource,
        users_source: UsersSource,
        permissions_group: str = DEFAULT_PERMISSIONS_GROUP,
        conjunction: bool = False,
        missing_rule_effect: Effect = Effect.PERMIT,
        deny_negates: bool = False,
        *,
        config: Optional[EngineConfig] = None,
        audit_logger: Optional[AuditLogger] = None,
        metrics: Optional[DecisionMetrics] = None,
    ):
        if not isinstance(roles_source, RolesSource):
            raise ConfigurationError('Parameter "roles_source" must be of type "RolesSource"')
        if not isinstance(users_source, UsersSource):
            raise ConfigurationError('Parameter "users_source" must be of type "UsersSource"')

        if config is None:
            config = EngineConfig(
                permissions_group=permissions_group,
                conjunction=conjunction,
                missing_rule_effect=missing_rule_effect,
                deny_negates=deny_negates,
            )
        config.validate()

        self.config = config
        self.roles_source = roles_source
        self.users_source = users_source
        self.audit_logger = audit_logger
        self.metrics = metrics

        self._compiler = RuleCompiler(roles_source)
        self._rules: Optional[RuleIndex] = None
        self._lock = asyncio.Lock()

        logger.info(
            f"RbacEngine created (group={config.permissions_group}, "
            f"conjunction={config.conjunction})"
        )

    @property
    def is_ready(self) -> bool:
        return self._rules is not None

    @property
    def aiohttp(self):
        """Boundary adapter offering allow/deny decorators over this engine."""
        from ..middleware.aiohttp import AioHttpRbac
        return AioHttpRbac(self)

    async def initialize(self) -> RuleIndex:
        """
        Compile the roles source with the configured group and mode.

        Calling it again extends the current index.
        """
        return await self.compile()

    async def recompile(self) -> RuleIndex:
        """Compile the roles source again over the current index."""
        return await self.compile()

    async def compile(self, group: Optional[str] = None,
                      conjunction: Optional[bool] = None) -> RuleIndex:
        """
        Compile a pass over the roles source into a new index and swap it in.

        Args:
            group: Permissions group of this pass, defaults to the configured one
            conjunction: Conjunction mode of this pass, defaults to the configured one
        """
        group = group or self.config.permissions_group
        conjunction = self.config.conjunction if conjunction is None else conjunction

        async with self._lock:
            try:
                index = await self._compiler.compile(group, conjunction, base=self._rules)
            except RbacError:
                if self.metrics:
                    self.metrics.record_compilation(group, False)
                raise
            self._rules = index

        if self.metrics:
            self.metrics.record_compilation(group, True)
        return index

    def get_rules(self) -> RuleIndex:
        """The current rule index."""
        if self._rules is None:
            raise EngineNotReady()
        return self._rules

    async def _current_rules(self) -> RuleIndex:
        if self._lock.locked():
            # wait for the compilation in flight
            async with self._lock:
                pass
        return self.get_rules()

    async def permit(self, principal_id: Any, permissions: Optional[Sequence[str]],
                     group: Optional[str] = None) -> bool:
        """
        Whether any of the principal's roles grants one of the permissions.

        Args:
            principal_id: Id passed to the users source
            permissions: Requested permission names
            group: Permissions group, defaults to the configured one

        Returns:
            bool: True on the first satisfied role, False otherwise

        Raises:
            ValidationError: If permissions is not a list of strings
            EngineNotReady: If the engine was never initialized
            SourceError: If a data source fails
        """
        return await self._evaluate(principal_id, permissions, group, "permit")

    async def deny(self, principal_id: Any, permissions: Optional[Sequence[str]],
                   group: Optional[str] = None) -> bool:
        """
        Same answer as permit(), unless the engine was configured with
        deny_negates, in which case the complement is returned.
        """
        allowed = await self._evaluate(principal_id, permissions, group, "deny")
        return not allowed if self.config.deny_negates else allowed

    async def _evaluate(self, principal_id: Any, permissions: Optional[Sequence[str]],
                        group: Optional[str], action: str) -> bool:
        if permissions is not None:
            if not isinstance(permissions, (list, tuple)) or \
                    not all(isinstance(p, str) for p in permissions):
                raise ValidationError(
                    'Parameter "permissions" must be a list of strings',
                    field="permissions",
                )
        if not permissions:
            return False

        rules = await self._current_rules()
        group = group or self.config.permissions_group

        if self.metrics:
            with self.metrics.timer("rules"):
                allowed, role_name = await self._match_roles(rules, principal_id, permissions, group)
        else:
            allowed, role_name = await self._match_roles(rules, principal_id, permissions, group)

        logger.debug(
            f"{action}: principal {principal_id} {list(permissions)} in {group} -> "
            f"{allowed}" + (f" via role {role_name}" if role_name else "")
        )
        await self._record(principal_id, permissions, allowed, group, action, role_name)
        return allowed

    async def _match_roles(self, rules: RuleIndex, principal_id: Any,
                           permissions: Sequence[str], group: str):
        roles = await self._call(self.users_source, "get_user_roles_by_user_id", principal_id)
        for role in roles or []:
            role_name = await self._call(self.roles_source, "get_role_name", role)
            rule = rules.lookup(group, role_name)
            if rule is None:
                if self.config.missing_rule_effect is Effect.PERMIT:
                    return True, role_name
                continue
            if evaluate_rule(rule, permissions) is Effect.PERMIT:
                return True, role_name
        return False, None

    async def _call(self, source: Any, method: str, *args: Any) -> Any:
        try:
            return await getattr(source, method)(*args)
        except RbacError:
            raise
        except Exception as e:
            logger.error(f"{type(source).__name__}.{method} failed: {e}")
            raise SourceError(f"{method} failed: {e}", cause=e) from e

    async def _record(self, principal_id: Any, permissions: Sequence[str], allowed: bool,
                      group: str, action: str, role_name: Optional[str]) -> None:
        if self.metrics:
            self.metrics.record_decision("rules", allowed)
        if self.audit_logger:
            details = {"action": action, "group": group}
            if role_name:
                details["role"] = role_name
            await self.audit_logger.log(DecisionEvent(
                principal_id=principal_id,
                permissions=list(permissions),
                allowed=allowed,
                source="rules",
                details=details,
            ))

    def roles_for_group(self, group: Optional[str] = None) -> List[str]:
        """Role names with a rule in a permissions group."""
        group = group or self.config.permissions_group
        return [rule.role_name for rule in self.get_rules().for_group(group).values()]
