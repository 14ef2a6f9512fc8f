# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Core types and data structures for grbac.
Defines principals, decision requests/results, combinators and rule effects.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union
import math

from ..errors import (
    InvalidCombinatorCombination,
    InvalidIdentifier,
    ValidationError,
)


DEFAULT_PERMISSIONS_GROUP = "DEFAULT"

PrincipalId = Union[int, float, str]


class Combinator(Enum):
    """How several requested permissions are combined."""
    SINGLE = "SINGLE"
    OR = "OR"
    AND = "AND"

    @classmethod
    def parse(cls, value: Union[None, str, "Combinator"]) -> Optional["Combinator"]:
        """Parse a combinator given as enum, string or None (unset)."""
        if value is None or isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                pass
        raise ValidationError(
            f"Invalid combinator value: {value!r}, must be one of "
            f"{', '.join(c.value for c in cls)} or None",
            field="combinator",
        )


class Effect(Enum):
    """Rule effect. Only permit is ever stored; deny derives from it."""
    PERMIT = "permit"
    DENY = "deny"


def normalize_permission(permission: str) -> str:
    """Permissions compare case-insensitively."""
    return permission.lower()


def coerce_principal_id(value: Any) -> Union[int, float]:
    """
    Convert a principal id to a number.

    Accepts ints, finite floats and numeric strings. Booleans, empty
    strings, NaN and infinities are rejected.

    Raises:
        InvalidIdentifier: If the value is not convertible
    """
    if isinstance(value, bool):
        raise InvalidIdentifier(value)

    if isinstance(value, int):
        return value

    if isinstance(value, float):
        if not math.isfinite(value):
            raise InvalidIdentifier(value)
        return int(value) if value.is_integer() else value

    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise InvalidIdentifier(value)
        try:
            return int(text)
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            raise InvalidIdentifier(value)
        if not math.isfinite(number):
            raise InvalidIdentifier(value)
        return int(number) if number.is_integer() else number

    raise InvalidIdentifier(value)


def normalize_permissions(permissions: Any) -> List[str]:
    """
    Validate requested permissions and return them as a de-duplicated list.

    A single permission string is accepted and wrapped. Order is kept,
    later duplicates (compared case-insensitively) are dropped.

    Raises:
        ValidationError: If permissions is empty or not a list of strings
    """
    if isinstance(permissions, str):
        permissions = [permissions]

    if not isinstance(permissions, (list, tuple)):
        raise ValidationError(
            "Invalid permission value: must be a string or array",
            field="permissions",
        )

    if not permissions:
        raise ValidationError(
            "Invalid permission value: at least one permission is required",
            field="permissions",
        )

    result: List[str] = []
    seen = set()
    for permission in permissions:
        if not isinstance(permission, str) or not permission:
            raise ValidationError(
                "Invalid permission value: every permission must be a non-empty string",
                field="permissions",
            )
        key = normalize_permission(permission)
        if key not in seen:
            seen.add(key)
            result.append(permission)
    return result


def check_combinator(combinator: Optional[Combinator], count: int) -> None:
    """
    Check that a combinator fits the number of requested permissions.

    OR and AND need at least two permissions, SINGLE exactly one. An unset
    combinator accepts any non-empty request.
    """
    if combinator in (Combinator.OR, Combinator.AND) and count < 2:
        raise InvalidCombinatorCombination(
            combinator.value, count,
            f"Combinator {combinator.value} requires at least 2 permissions, got {count}",
        )
    if combinator is Combinator.SINGLE and count != 1:
        raise InvalidCombinatorCombination(
            combinator.value, count,
            f"Combinator SINGLE requires exactly 1 permission, got {count}",
        )


@dataclass
class Principal:
    """
    The identity whose access is decided.
    """
    id: PrincipalId
    type: Optional[str] = None
    claims: Dict[str, Any] = field(default_factory=dict)

    def merge_claims(self, claims: Dict[str, Any]) -> None:
        """Merge claims returned by a remote authority."""
        self.claims.update(claims)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            'id': self.id,
            'type': self.type,
            'claims': self.claims
        }


@dataclass
class DecisionRequest:
    """
    A request to decide access for a principal.
    """
    principal_id: PrincipalId
    permissions: List[str]
    combinator: Optional[Combinator] = None
    principal_type: Optional[str] = None

    def __post_init__(self):
        self.permissions = normalize_permissions(self.permissions)
        self.combinator = Combinator.parse(self.combinator)
        check_combinator(self.combinator, len(self.permissions))

    def to_wire(self) -> Dict[str, Any]:
        """Body of a remote delegation request."""
        return {
            'permissions': list(self.permissions),
            'checkType': self.combinator.value if self.combinator else None
        }

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> 'DecisionRequest':
        """Create from a remote delegation request body."""
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object")
        return cls(
            principal_id=data.get('id'),
            permissions=data.get('permissions'),
            combinator=data.get('checkType'),
            principal_type=data.get('type'),
        )


@dataclass
class DecisionResult:
    """
    Outcome of a granted decision.
    """
    allowed: bool
    principal_id: Optional[PrincipalId] = None
    granted: Tuple[str, ...] = ()
    claims: Dict[str, Any] = field(default_factory=dict)
    source: str = "local"
    timestamp: datetime = field(default_factory=datetime.now)

    def __bool__(self) -> bool:
        return self.allowed

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            'allowed': self.allowed,
            'principal_id': self.principal_id,
            'granted': list(self.granted),
            'claims': self.claims,
            'source': self.source,
            'timestamp': self.timestamp.isoformat()
        }


def intersect_permissions(requested: Sequence[str], held: Sequence[str]) -> List[str]:
    """Requested permissions the principal holds, in request order."""
    held_keys = {normalize_permission(p) for p in held}
    return [p for p in requested if normalize_permission(p) in held_keys]
