# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Service-to-service authentication for outbound Dataverse calls.

Tokens come from an Azure Identity credential (client credentials in the
hosted service) and are cached until shortly before they expire.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from azure.core.credentials import TokenCredential
from azure.core.exceptions import ClientAuthenticationError

from ._error_codes import HTTP_502
from .cache import TTLCache
from .errors import UpstreamError

logger = logging.getLogger(__name__)


@dataclass
class TokenPair:
    """
    Container for an OAuth2 access token and its associated resource scope.

    :param resource: The OAuth2 scope/resource for which the token was acquired.
    :type resource: :class:`str`
    :param access_token: The access token string.
    :type access_token: :class:`str`
    :param expires_on: Expiry as a POSIX timestamp.
    :type expires_on: :class:`int`
    """

    resource: str
    access_token: str
    expires_on: int = 0


class _AuthManager:
    """
    Azure Identity-based authentication manager with a per-scope token cache.

    :param credential: Azure Identity credential implementation.
    :type credential: ~azure.core.credentials.TokenCredential
    :param token_cache: Cache holding one :class:`TokenPair` per scope.
    :type token_cache: ~community_portal.core.cache.TTLCache
    :param refresh_skew: Seconds before expiry at which a cached token is treated as stale.
    :type refresh_skew: :class:`float`
    :raises TypeError: If ``credential`` does not implement :class:`~azure.core.credentials.TokenCredential`.
    """

    def __init__(
        self,
        credential: TokenCredential,
        token_cache: TTLCache,
        refresh_skew: float = 60.0,
        now: Optional[Callable[[], float]] = None,
    ) -> None:
        if not isinstance(credential, TokenCredential):
            raise TypeError("credential must implement azure.core.credentials.TokenCredential.")
        self.credential: TokenCredential = credential
        self._tokens = token_cache
        self._refresh_skew = refresh_skew
        self._now = now or time.time

    def _acquire_token(self, scope: str) -> TokenPair:
        """
        Return a token for ``scope``, reusing the cached one while it is fresh.

        :param scope: OAuth2 scope string, typically ``"https://<org>.crm.dynamics.com/.default"``.
        :type scope: :class:`str`
        :return: Token container with access token and scope information.
        :rtype: ~community_portal.core._auth.TokenPair
        :raises ~community_portal.core.errors.UpstreamError: If the credential cannot issue a token.
        """
        cached: Optional[TokenPair] = self._tokens.get(scope)
        if cached is not None and cached.expires_on - self._refresh_skew > self._now():
            return cached

        try:
            token = self.credential.get_token(scope)
        except ClientAuthenticationError as exc:
            logger.error("Service credential failed to acquire a token for %s: %s", scope, exc)
            raise UpstreamError(
                "Service credential could not acquire a token",
                status_code=502,
                subcode=HTTP_502,
            ) from exc

        pair = TokenPair(resource=scope, access_token=token.token, expires_on=int(token.expires_on))
        lifetime = pair.expires_on - self._refresh_skew - self._now()
        if lifetime > 0:
            self._tokens.set(scope, pair, ttl=lifetime)
        logger.debug("Acquired service token for %s", scope)
        return pair
