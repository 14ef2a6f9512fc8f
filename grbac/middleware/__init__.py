# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Package middleware binds decisions to web framework handlers.
"""

from .aiohttp import (
    AioHttpRbac,
    get_descendant,
    permission_denied_response,
    user_middleware,
)

__all__ = [
    'AioHttpRbac',
    'get_descendant',
    'permission_denied_response',
    'user_middleware',
]
