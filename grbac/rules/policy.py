# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Evaluation of requested permissions against a compiled rule.
"""

from typing import Iterable, List

from ..core.types import Effect, normalize_permission
from .types import Rule


def matching_permissions(rule: Rule, requested: Iterable[str]) -> List[str]:
    """Requested permissions found in the rule's target, in request order."""
    granted = {name for atom in rule.target for name in atom.names()}
    return [p for p in requested if normalize_permission(p) in granted]


def evaluate_rule(rule: Rule, requested: Iterable[str]) -> Effect:
    """
    Permit if any requested permission is in the rule's target.

    Returns Effect.DENY when nothing matches; a rule never stores a deny
    effect itself.
    """
    if rule.effect is Effect.PERMIT and matching_permissions(rule, requested):
        return Effect.PERMIT
    return Effect.DENY
