# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Decision audit logging.

Every grant and denial made by an Rbac instance or an RbacEngine can be
recorded as a DecisionEvent.
"""

from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional
import asyncio
import json
import logging
import uuid


logger = logging.getLogger(__name__)


@dataclass
class DecisionEvent:
    """A recorded access decision"""
    principal_id: Any
    permissions: List[str]
    allowed: bool
    source: str  # "local", "remote" or "rules"
    event_id: str = ""
    principal_type: Optional[str] = None
    combinator: Optional[str] = None
    reason: str = ""
    timestamp: datetime = field(default_factory=datetime.now)
    details: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.event_id:
            self.event_id = str(uuid.uuid4())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "principal_id": self.principal_id,
            "principal_type": self.principal_type,
            "permissions": self.permissions,
            "combinator": self.combinator,
            "allowed": self.allowed,
            "source": self.source,
            "reason": self.reason,
            "timestamp": self.timestamp.isoformat(),
            "details": self.details,
        }


class AuditLogger(ABC):
    """Abstract base class for decision audit logging"""

    @abstractmethod
    async def log(self, event: DecisionEvent) -> None:
        """Log a decision event"""
        pass

    @abstractmethod
    async def get_events(
        self,
        principal_id: Any = None,
        allowed: Optional[bool] = None,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
    ) -> List[DecisionEvent]:
        """Retrieve decision events with optional filtering"""
        pass

    async def close(self) -> None:
        """Close the audit logger and release resources"""
        pass


class MemoryAuditLogger(AuditLogger):
    """In-memory audit logger for development and testing"""

    def __init__(self, max_entries: int = 1000):
        self.max_entries = max_entries
        self.events: deque = deque(maxlen=max_entries)
        self._lock = asyncio.Lock()

    async def log(self, event: DecisionEvent) -> None:
        """Log a decision event to memory"""
        async with self._lock:
            self.events.append(event)

    async def get_events(
        self,
        principal_id: Any = None,
        allowed: Optional[bool] = None,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
    ) -> List[DecisionEvent]:
        """Retrieve decision events with optional filtering"""
        async with self._lock:
            filtered_events = []

            for event in self.events:
                if principal_id is not None and event.principal_id != principal_id:
                    continue

                if allowed is not None and event.allowed != allowed:
                    continue

                if start_time and event.timestamp < start_time:
                    continue

                if end_time and event.timestamp > end_time:
                    continue

                filtered_events.append(event)

            return filtered_events


class LoggingAuditLogger(AuditLogger):
    """Audit logger writing one JSON line per decision to a logging.Logger"""

    def __init__(self, target: Optional[logging.Logger] = None, level: int = logging.INFO):
        self.target = target or logging.getLogger("grbac.audit.decisions")
        self.level = level

    async def log(self, event: DecisionEvent) -> None:
        self.target.log(self.level, json.dumps(event.to_dict(), default=str))

    async def get_events(
        self,
        principal_id: Any = None,
        allowed: Optional[bool] = None,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
    ) -> List[DecisionEvent]:
        """Events are not retained"""
        return []


def create_audit_logger(logger_type: str = "memory", **kwargs) -> AuditLogger:
    """
    Factory function to create audit loggers

    Args:
        logger_type: Type of logger ("memory" or "logging")
        **kwargs: Additional arguments for the logger

    Returns:
        AuditLogger instance
    """
    if logger_type == "memory":
        return MemoryAuditLogger(kwargs.get("max_entries", 1000))
    elif logger_type == "logging":
        return LoggingAuditLogger(kwargs.get("target"), kwargs.get("level", logging.INFO))
    else:
        raise ValueError(f"Unknown logger type: {logger_type}")
