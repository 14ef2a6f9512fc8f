# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Package rules compiles roles into an indexed rule set and evaluates
requested permissions against single rules.
"""

from .types import (
    PermissionAtom,
    Rule,
    RuleIndex,
    make_rule_key,
)

from .policy import (
    evaluate_rule,
    matching_permissions,
)

from .compiler import (
    RuleCompiler,
    compile_rules,
)

__all__ = [
    'PermissionAtom',
    'Rule',
    'RuleIndex',
    'make_rule_key',
    'evaluate_rule',
    'matching_permissions',
    'RuleCompiler',
    'compile_rules',
]
