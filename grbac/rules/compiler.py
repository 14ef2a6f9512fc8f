# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Rule compilation from a roles source.

The compiler drains the roles source once, resolving every role's
permission names concurrently, and only then builds a new RuleIndex.
"""

from typing import Any, Dict, List, Optional, Tuple
import asyncio
import logging

from ..core.types import DEFAULT_PERMISSIONS_GROUP, Effect, normalize_permission
from ..dal.roles import RolesSource
from ..errors import ConfigurationError, RbacError, SourceError
from .types import PermissionAtom, Rule, RuleIndex, make_rule_key


logger = logging.getLogger(__name__)


class RuleCompiler:
    """
    Builds rule indexes from a roles source.
    """

    def __init__(self, roles_source: RolesSource):
        if not isinstance(roles_source, RolesSource):
            raise ConfigurationError('Parameter "roles_source" must be of type "RolesSource"')
        self.roles_source = roles_source

    async def compile(
        self,
        group: str = DEFAULT_PERMISSIONS_GROUP,
        conjunction: bool = False,
        base: Optional[RuleIndex] = None,
    ) -> RuleIndex:
        """
        Compile the roles source into a rule index.

        Args:
            group: Permissions group used as the rule key prefix
            conjunction: Aggregate the permissions of every role of the
                group into one shared tuple referenced by all its rules
            base: Existing index to extend; it is left untouched

        Returns:
            RuleIndex: A new index holding base's rules plus this pass

        Raises:
            SourceError: If the roles source fails or returns malformed data
        """
        if not isinstance(group, str) or not group:
            raise ConfigurationError('Parameter "group" must be a non-empty string')
        if not isinstance(conjunction, bool):
            raise ConfigurationError('Parameter "conjunction" must be of type "bool"')

        resolved = await self._resolve_roles()

        rules: Dict[str, Rule] = dict(base or {})
        if conjunction:
            self._apply_conjunction(rules, resolved, group)
        else:
            for role_name, permissions in resolved:
                key = make_rule_key(group, role_name)
                atoms = [PermissionAtom(key, p) for p in permissions]
                if key in rules:
                    rules[key] = rules[key].merged(atoms)
                else:
                    rules[key] = Rule(key=key, target=tuple(atoms))

        logger.info(
            f"Compiled {len(resolved)} role(s) into permissions group {group} "
            f"(conjunction={conjunction}, {len(rules)} rule(s) in index)"
        )
        return RuleIndex(rules)

    def _apply_conjunction(self, rules: Dict[str, Rule],
                           resolved: List[Tuple[str, List[str]]], group: str) -> None:
        group_keys = [k for k, r in rules.items() if r.group == group]

        aggregated: List[str] = []
        for key in group_keys:
            for atom in rules[key].target:
                if atom.is_aggregate:
                    aggregated.extend(atom.value)
        for _, permissions in resolved:
            aggregated.extend(permissions)
        shared = tuple(dict.fromkeys(aggregated))

        pass_keys = [make_rule_key(group, name) for name, _ in resolved]
        for key in dict.fromkeys(group_keys + pass_keys):
            existing = rules.get(key)
            kept = tuple(a for a in existing.target if not a.is_aggregate) if existing else ()
            effect = existing.effect if existing else Effect.PERMIT
            rules[key] = Rule(key=key, target=kept + (PermissionAtom(key, shared),), effect=effect)

    async def _resolve_roles(self) -> List[Tuple[str, List[str]]]:
        """Every distinct role name with its lower-cased, de-duplicated permissions."""
        roles = await self._call("find_all_roles")
        if roles is None:
            roles = []
        if not isinstance(roles, (list, tuple)):
            raise SourceError("find_all_roles must return a list of roles")

        names = await asyncio.gather(*(self._call("get_role_name", role) for role in roles))
        for name in names:
            if not isinstance(name, str) or not name:
                raise SourceError('Role names must be of type "str"')

        unique_names = list(dict.fromkeys(names))
        permissions = await asyncio.gather(*(self._resolve_permissions(n) for n in unique_names))
        return list(zip(unique_names, permissions))

    async def _resolve_permissions(self, role_name: str) -> List[str]:
        permissions = await self._call("get_role_permissions_by_role_name", role_name)
        permission_names = await asyncio.gather(
            *(self._call("get_permission_name", p) for p in (permissions or []))
        )

        result: List[str] = []
        for name in permission_names:
            if not name or not isinstance(name, str):
                continue
            name = normalize_permission(name)
            if name not in result:
                result.append(name)
        return result

    async def _call(self, method: str, *args: Any) -> Any:
        try:
            return await getattr(self.roles_source, method)(*args)
        except RbacError:
            raise
        except Exception as e:
            logger.error(f"Roles source {method} failed: {e}")
            raise SourceError(f"Roles source {method} failed: {e}", cause=e) from e


async def compile_rules(
    roles_source: RolesSource,
    group: str = DEFAULT_PERMISSIONS_GROUP,
    conjunction: bool = False,
    base: Optional[RuleIndex] = None,
) -> RuleIndex:
    """Compile a roles source into a new rule index."""
    return await RuleCompiler(roles_source).compile(group, conjunction, base)
