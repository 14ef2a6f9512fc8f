# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Core module initialization
"""

from .types import (
    DEFAULT_PERMISSIONS_GROUP,
    PrincipalId,
    Combinator,
    Effect,
    Principal,
    DecisionRequest,
    DecisionResult,
    normalize_permission,
    normalize_permissions,
    coerce_principal_id,
    check_combinator,
    intersect_permissions,
)
from .config import RemoteAuthConfig, RbacConfig, EngineConfig, merge_headers, layer_options
from .rbac import Rbac, PrincipalRbac

__all__ = [
    'DEFAULT_PERMISSIONS_GROUP',
    'PrincipalId',
    'Combinator',
    'Effect',
    'Principal',
    'DecisionRequest',
    'DecisionResult',
    'normalize_permission',
    'normalize_permissions',
    'coerce_principal_id',
    'check_combinator',
    'intersect_permissions',
    'RemoteAuthConfig',
    'RbacConfig',
    'EngineConfig',
    'merge_headers',
    'layer_options',
    'Rbac',
    'PrincipalRbac',
]
