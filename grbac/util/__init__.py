# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Utility functions for grbac.
"""

from .config import (
    ENV_PREFIX,
    get_config_value,
    get_bool_config,
    parse_duration_string,
    parse_timeout,
    merge_configs,
    normalize_config_key,
    expand_config_variables,
    load_config_file,
)
from .logging import configure_logging

__all__ = [
    'ENV_PREFIX',
    'get_config_value',
    'get_bool_config',
    'parse_duration_string',
    'parse_timeout',
    'merge_configs',
    'normalize_config_key',
    'expand_config_variables',
    'load_config_file',
    'configure_logging',
]
