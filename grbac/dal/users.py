# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Users data source interface.
"""

from abc import ABC, abstractmethod
from typing import Any, List, Optional


class UsersSource(ABC):
    """
    Abstract base class for access to users and their roles.
    """

    @abstractmethod
    async def find_user_by_id(self, user_id: Any) -> Optional[Any]:
        """Return a user record by id."""
        pass

    @abstractmethod
    async def get_user_roles_by_user_id(self, user_id: Any) -> List[Any]:
        """Return the role records of a user, in priority order."""
        pass

    async def close(self) -> None:
        """Release resources held by the source."""
        pass
