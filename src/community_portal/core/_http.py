# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
HTTP client with timeout handling and optional session support.

This module provides :class:`~community_portal.core._http._HttpClient`, a thin
wrapper around the requests library. Each call is attempted exactly once: a
failed backend call ends the request it belongs to. Transport failures are
translated into the portal error taxonomy so callers never see raw
``requests`` exceptions.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import requests

from ._error_codes import HTTP_502
from .errors import GatewayTimeoutError, UpstreamError

logger = logging.getLogger(__name__)


class _HttpClient:
    """
    HTTP client with a per-call timeout and optional connection pooling.

    :param timeout: Upper bound on wait time for each call, in seconds. Default is 30.
    :type timeout: :class:`float` | None
    :param session: Optional requests.Session for connection pooling. If provided,
        all requests use this session for efficient connection reuse.
    :type session: :class:`requests.Session` | None
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.default_timeout: float = timeout if timeout is not None else 30.0
        self._session = session

    def _request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        """
        Execute a single HTTP request.

        :param method: HTTP method (GET, POST, PATCH, DELETE).
        :type method: :class:`str`
        :param url: Target URL for the request.
        :type url: :class:`str`
        :param kwargs: Additional arguments passed to ``requests.request()`` or
            ``session.request()``, including headers, params, json.
        :return: HTTP response object, whatever its status.
        :rtype: :class:`requests.Response`
        :raises ~community_portal.core.errors.GatewayTimeoutError: If the call exceeds the timeout.
        :raises ~community_portal.core.errors.UpstreamError: On any other transport failure.
        """
        kwargs.setdefault("timeout", self.default_timeout)
        try:
            if self._session is not None:
                return self._session.request(method, url, **kwargs)
            return requests.request(method, url, **kwargs)
        except requests.exceptions.Timeout as exc:
            logger.warning("%s %s timed out after %ss", method.upper(), url, kwargs["timeout"])
            raise GatewayTimeoutError(f"{method.upper()} {url} timed out") from exc
        except requests.exceptions.RequestException as exc:
            logger.error("%s %s failed: %s", method.upper(), url, exc)
            raise UpstreamError(
                f"{method.upper()} {url} failed: {exc.__class__.__name__}",
                status_code=502,
                subcode=HTTP_502,
            ) from exc

    def close(self) -> None:
        """
        Close the HTTP client and release resources.

        If a session was provided, this method closes it. Safe to call multiple times.
        """
        if self._session is not None:
            self._session.close()
            self._session = None
