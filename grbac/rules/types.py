# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Rule and rule index types.

A rule is keyed ``group:roleName``. Its target is a tuple of permission
atoms, each tagged with the owning rule key. In conjunction mode a rule
holds a single atom whose value is the aggregated permission tuple of the
whole group, and every rule of that group references the same tuple.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, List, Mapping, NamedTuple, Optional, Tuple, Union

from ..core.types import DEFAULT_PERMISSIONS_GROUP, Effect


RULE_KEY_SEPARATOR = ":"


def make_rule_key(group: Optional[str], role_name: str) -> str:
    """Build a rule key from a permissions group and a role name."""
    return f"{group or DEFAULT_PERMISSIONS_GROUP}{RULE_KEY_SEPARATOR}{role_name}"


class PermissionAtom(NamedTuple):
    """A permission (or aggregated permissions) tagged with its rule key."""
    rule_key: str
    value: Union[str, Tuple[str, ...]]

    @property
    def is_aggregate(self) -> bool:
        return isinstance(self.value, tuple)

    def names(self) -> Tuple[str, ...]:
        return self.value if isinstance(self.value, tuple) else (self.value,)

    def to_dict(self) -> Dict[str, Any]:
        value = list(self.value) if isinstance(self.value, tuple) else self.value
        return {self.rule_key: value}


@dataclass(frozen=True)
class Rule:
    """
    A compiled role rule.
    """
    key: str
    target: Tuple[PermissionAtom, ...] = ()
    effect: Effect = Effect.PERMIT

    @property
    def group(self) -> str:
        return self.key.split(RULE_KEY_SEPARATOR, 1)[0]

    @property
    def role_name(self) -> str:
        return self.key.split(RULE_KEY_SEPARATOR, 1)[1]

    def permissions(self) -> List[str]:
        """Every permission name the rule grants, in target order."""
        seen = set()
        result = []
        for atom in self.target:
            for name in atom.names():
                if name not in seen:
                    seen.add(name)
                    result.append(name)
        return result

    def merged(self, atoms: Iterable[PermissionAtom]) -> "Rule":
        """
        Return a rule with the genuinely new atoms appended.

        Atoms compare by rule key and value. An aggregated atom that adds
        permissions replaces the existing aggregate of the same key when it
        is a superset of it, otherwise the missing names are appended to it.
        Existing entries are never dropped.
        """
        target = list(self.target)
        for atom in atoms:
            if atom in target:
                continue
            if atom.is_aggregate:
                index = next(
                    (i for i, a in enumerate(target)
                     if a.is_aggregate and a.rule_key == atom.rule_key),
                    None,
                )
                if index is not None:
                    existing = target[index]
                    if set(atom.value) >= set(existing.value):
                        target[index] = atom
                    else:
                        extra = tuple(v for v in atom.value if v not in existing.value)
                        target[index] = PermissionAtom(atom.rule_key, existing.value + extra)
                    continue
            target.append(atom)

        if len(target) == len(self.target) and all(a is b for a, b in zip(target, self.target)):
            return self
        return Rule(key=self.key, target=tuple(target), effect=self.effect)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            'target': [atom.to_dict() for atom in self.target],
            'effect': self.effect.value
        }


class RuleIndex(Mapping):
    """
    Read-only mapping from rule key to Rule.

    Compilation always builds a new index; an index is never mutated after
    construction.
    """

    def __init__(self, rules: Optional[Mapping[str, Rule]] = None):
        self._rules = MappingProxyType(dict(rules or {}))

    def __getitem__(self, key: str) -> Rule:
        return self._rules[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __repr__(self) -> str:
        return f"RuleIndex({list(self._rules)})"

    def lookup(self, group: Optional[str], role_name: str) -> Optional[Rule]:
        """Find the rule for a role within a permissions group."""
        return self._rules.get(make_rule_key(group, role_name))

    def for_group(self, group: str) -> Dict[str, Rule]:
        """Every rule of a permissions group."""
        prefix = f"{group}{RULE_KEY_SEPARATOR}"
        return {k: r for k, r in self._rules.items() if k.startswith(prefix)}

    def groups(self) -> List[str]:
        """Permissions groups present in the index, in first-seen order."""
        return list(dict.fromkeys(r.group for r in self._rules.values()))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {key: rule.to_dict() for key, rule in self._rules.items()}
