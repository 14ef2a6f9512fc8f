"""
grbac Python Package

Role-based access-control decision engine: compiled role rules, flat
callback decisions and remote delegation.
"""

__version__ = "0.1.0"
__author__ = "Mauricio Fernandez"
__email__ = "mauricio.fernandez@siemens.com"

from .errors import RbacError, PermissionDenied
from .core.types import Combinator, Effect, DecisionRequest, DecisionResult
from .core.config import RbacConfig, RemoteAuthConfig, EngineConfig
from .core.rbac import Rbac, PrincipalRbac
from .authz.engine import RbacEngine
from .rules.types import Rule, RuleIndex
from .dal.roles import RolesSource
from .dal.users import UsersSource

__all__ = [
    "RbacError",
    "PermissionDenied",
    "Combinator",
    "Effect",
    "DecisionRequest",
    "DecisionResult",
    "RbacConfig",
    "RemoteAuthConfig",
    "EngineConfig",
    "Rbac",
    "PrincipalRbac",
    "RbacEngine",
    "Rule",
    "RuleIndex",
    "RolesSource",
    "UsersSource",
]
