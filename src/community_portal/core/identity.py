# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Inbound caller identity.

The identity provider verifies bearer tokens; this module only reads the
payload. Expiry is still enforced so that a stale token cannot reach the data
service.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import jwt

from ._error_codes import (
    AUTH_HEADER_MISSING,
    AUTH_SUBJECT_MISSING,
    AUTH_TOKEN_EXPIRED,
    AUTH_TOKEN_MALFORMED,
)
from .errors import AuthenticationError

logger = logging.getLogger(__name__)

_DECODE_OPTIONS = {
    "verify_signature": False,
    "verify_exp": True,
    "verify_nbf": True,
    "verify_iat": False,
    "verify_aud": False,
    "verify_iss": False,
    "require": ["exp", "sub"],
}


@dataclass(frozen=True)
class UserIdentity:
    """
    The authenticated caller, derived once per request.

    :param subject: Identity provider user id (``sub`` claim).
    :type subject: :class:`str`
    :param email: Email claim, when the provider includes one.
    :type email: :class:`str` | None
    :param session_id: Session id (``sid`` claim), when present.
    :type session_id: :class:`str` | None
    """

    subject: str
    email: Optional[str] = None
    session_id: Optional[str] = None


def _email_claim(payload: Mapping[str, Any]) -> Optional[str]:
    """Primary email: the first ``email_addresses`` entry when present, else ``email``."""
    addresses = payload.get("email_addresses")
    if isinstance(addresses, list) and addresses and isinstance(addresses[0], Mapping):
        first = addresses[0]
        email = first.get("email_address") or first.get("email")
        if email:
            return str(email)
    return payload.get("email") or None


def decode_bearer_token(authorization: Optional[str], leeway: int = 60) -> UserIdentity:
    """
    Build a :class:`UserIdentity` from an ``Authorization`` header value.

    :param authorization: Raw header value, expected as ``"Bearer <jwt>"``.
    :type authorization: :class:`str` | None
    :param leeway: Clock-skew tolerance in seconds for ``exp``/``nbf``.
    :type leeway: :class:`int`
    :return: The caller identity.
    :rtype: ~community_portal.core.identity.UserIdentity
    :raises ~community_portal.core.errors.AuthenticationError: If the header is missing,
        not a bearer token, malformed, expired or lacks a subject.
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthenticationError("Missing or invalid authorization header", subcode=AUTH_HEADER_MISSING)
    token = authorization[len("Bearer ") :].strip()
    if not token:
        raise AuthenticationError("Empty bearer token", subcode=AUTH_HEADER_MISSING)

    try:
        payload = jwt.decode(token, options=_DECODE_OPTIONS, leeway=leeway)
    except jwt.ExpiredSignatureError as exc:
        raise AuthenticationError("Token has expired", subcode=AUTH_TOKEN_EXPIRED) from exc
    except jwt.MissingRequiredClaimError as exc:
        raise AuthenticationError(f"Token missing claim: {exc.claim}", subcode=AUTH_SUBJECT_MISSING) from exc
    except jwt.InvalidTokenError as exc:
        raise AuthenticationError(f"Invalid token: {exc}", subcode=AUTH_TOKEN_MALFORMED) from exc

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        raise AuthenticationError("Token missing required user id claim", subcode=AUTH_SUBJECT_MISSING)

    logger.debug("Decoded bearer token for subject %s", subject)
    return UserIdentity(
        subject=subject,
        email=_email_claim(payload),
        session_id=payload.get("sid") or None,
    )
