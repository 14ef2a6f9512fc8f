# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Package remote delegates decisions to a remote authority over HTTP and
serves decisions to remote callers.
"""

from .client import RemoteAuthClient, parse_claims, AUTHORIZATION_HEADER
from .server import AuthorizationHandler, create_authorization_app, DENIED_BODY

__all__ = [
    'RemoteAuthClient',
    'parse_claims',
    'AUTHORIZATION_HEADER',
    'AuthorizationHandler',
    'create_authorization_app',
    'DENIED_BODY',
]
