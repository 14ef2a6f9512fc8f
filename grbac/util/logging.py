# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Logging setup for grbac entry points.
"""

import logging
from typing import Union

from .config import get_config_value


DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: Union[int, str, None] = None, fmt: str = DEFAULT_FORMAT) -> None:
    """
    Configure root logging.

    The level defaults to the GRBAC_LOG_LEVEL environment variable, then INFO.
    """
    if level is None:
        level = get_config_value("log_level", "INFO")
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=level, format=fmt)
