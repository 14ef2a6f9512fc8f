# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Remote delegation client.

Posts a decision request to a remote authority and interprets the HTTP
status as the decision. Request body::

    {"permissions": ["users:read"], "checkType": null, "id": 1}

``id`` is only sent when the principal id is known. Any 2xx status grants
access and a JSON object body becomes the principal's claims; every other
status is a denial.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Mapping, Optional, Sequence, Union

from aiohttp import ClientError, ClientSession, ClientTimeout

from ..core.config import RemoteAuthConfig, merge_headers
from ..core.types import (
    Combinator,
    DecisionRequest,
    DecisionResult,
    PrincipalId,
)
from ..errors import RemoteAuthorizationDenied, RemoteNotConfigured, RemoteTransportError
from ..metrics import DecisionMetrics


logger = logging.getLogger(__name__)

AUTHORIZATION_HEADER = "Authorization"


class RemoteAuthClient:
    """
    HTTP client for a remote authority.

    The aiohttp session is created on first use and closed by close(),
    unless one was injected, in which case the caller owns it.
    """

    def __init__(self, config: Optional[RemoteAuthConfig] = None,
                 session: Optional[ClientSession] = None,
                 metrics: Optional[DecisionMetrics] = None):
        if config is not None:
            if isinstance(config, Mapping):
                config = RemoteAuthConfig.from_dict(config)
            config.validate()
        self.config = config
        self.metrics = metrics
        self._session = session
        self._owns_session = session is None

    @property
    def url(self) -> Optional[str]:
        return self.config.url if self.config else None

    async def _get_session(self) -> ClientSession:
        if self._session is None or self._session.closed:
            self._session = ClientSession()
            self._owns_session = True
        return self._session

    def build_headers(self, headers: Optional[Mapping[str, str]] = None,
                      authorization: Optional[str] = None,
                      config: Optional[RemoteAuthConfig] = None) -> Dict[str, str]:
        """Configured headers, then per-call headers, then the authorization value."""
        config = config or self.config
        result = merge_headers(
            config.headers if config else None,
            headers,
            {AUTHORIZATION_HEADER: authorization} if authorization else None,
        )
        return result

    async def authorize_remote(
        self,
        permissions: Union[str, Sequence[str]],
        combinator: Union[None, str, Combinator] = None,
        headers: Optional[Mapping[str, str]] = None,
        authorization: Optional[str] = None,
        principal_id: Optional[PrincipalId] = None,
        timeout: Optional[float] = None,
        config: Optional[RemoteAuthConfig] = None,
    ) -> DecisionResult:
        """
        Ask the remote authority for a decision.

        Args:
            permissions: Requested permission or permissions
            combinator: How the permissions combine, sent as checkType
            headers: Per-call headers, winning over configured headers
            authorization: Authorization header value to forward
            principal_id: Principal id, sent as ``id`` when given
            timeout: Seconds before the request is abandoned
            config: Endpoint to use instead of the client's own

        Returns:
            DecisionResult: A grant, with claims when the body is a JSON object

        Raises:
            RemoteNotConfigured: If no url is configured
            RemoteAuthorizationDenied: If the authority answers non-2xx
            RemoteTransportError: On network failure or timeout
        """
        config = config or self.config
        if config is None or not config.url:
            raise RemoteNotConfigured()

        request = DecisionRequest(principal_id, permissions, combinator)
        permissions = request.permissions
        body = request.to_wire()
        if principal_id is not None:
            body['id'] = principal_id

        request_headers = self.build_headers(headers, authorization, config)
        timeout = timeout if timeout is not None else config.timeout
        request_options: Dict[str, Any] = {"json": body, "headers": request_headers}
        if timeout:
            request_options["timeout"] = ClientTimeout(total=timeout)

        session = await self._get_session()
        logger.debug(f"Delegating decision for {permissions} to {config.url}")

        try:
            async with session.post(config.url, **request_options) as response:
                status = response.status
                reason = response.reason or ""
                payload = await response.read()
        except asyncio.TimeoutError as e:
            logger.error(f"Remote authority {config.url} timed out after {timeout}s")
            self._record_error(True)
            raise RemoteTransportError(
                f"Remote authority timed out after {timeout}s",
                url=config.url, timed_out=True, cause=e,
            ) from e
        except ClientError as e:
            logger.error(f"Remote authority {config.url} unreachable: {e}")
            self._record_error(False)
            raise RemoteTransportError(
                f"Remote authority unreachable: {e}",
                url=config.url, cause=e,
            ) from e

        if not 200 <= status < 300:
            logger.warning(f"Remote authority denied {permissions}: {status} {reason}")
            raise RemoteAuthorizationDenied(status, reason, url=config.url)

        return DecisionResult(
            allowed=True,
            principal_id=principal_id,
            granted=tuple(permissions),
            claims=parse_claims(payload),
            source="remote",
        )

    def _record_error(self, timed_out: bool) -> None:
        if self.metrics:
            self.metrics.record_remote_error(timed_out)

    async def close(self) -> None:
        """Close the owned session."""
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "RemoteAuthClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


def parse_claims(body: Union[bytes, str]) -> Dict[str, Any]:
    """
    Claims carried by a response body.

    Anything but a UTF-8 JSON object, including an empty or undecodable
    body, yields no claims.
    """
    if not body:
        return {}
    try:
        if isinstance(body, bytes):
            body = body.decode("utf-8")
        data = json.loads(body)
    except (UnicodeDecodeError, ValueError):
        return {}
    return data if isinstance(data, dict) else {}
