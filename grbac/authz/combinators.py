# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Combinator semantics over a principal's held permissions.

  - unset, one permission:     held contains it
  - unset, several:            every requested permission is held (AND by count)
  - SINGLE:                    held contains the single requested permission
  - OR:                        at least one requested permission is held
  - AND (strict):              held set equals the requested set exactly
  - AND (non-strict):          held set is a superset of the requested set
"""

from typing import Iterable, List, Optional, Sequence

from ..core.types import (
    Combinator,
    check_combinator,
    intersect_permissions,
    normalize_permission,
)


def evaluate_combinator(
    requested: Sequence[str],
    held: Iterable[str],
    combinator: Optional[Combinator] = None,
    strict_and: bool = True,
) -> List[str]:
    """
    Evaluate requested permissions against held permissions.

    Args:
        requested: Validated, de-duplicated requested permissions
        held: Every permission the principal holds
        combinator: How to combine the requested permissions
        strict_and: Whether AND demands exact equality instead of a superset

    Returns:
        The granted permissions; an empty list means denied

    Raises:
        InvalidCombinatorCombination: If combinator and permission count disagree
    """
    check_combinator(combinator, len(requested))

    held = [p for p in held if isinstance(p, str)]
    matched = intersect_permissions(requested, held)

    if combinator is Combinator.OR:
        return matched

    if combinator is Combinator.AND:
        if strict_and:
            requested_keys = {normalize_permission(p) for p in requested}
            held_keys = {normalize_permission(p) for p in held}
            return list(requested) if requested_keys == held_keys else []
        return matched if len(matched) == len(requested) else []

    # SINGLE and unset
    return matched if len(matched) == len(requested) else []
