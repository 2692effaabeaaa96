# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..common.constants import CONTACT_ADMIN_FIELD, CONTACT_PARENT_ACCOUNT_FIELD


@dataclass(frozen=True)
class ContactRecord:
    """
    The caller's verified contact row.

    :param contact_id: Contact id.
    :type contact_id: str
    :param email: Primary email (``emailaddress1``).
    :type email: str or None
    :param is_admin: Portal administrator flag.
    :type is_admin: bool
    :param parent_account_id: Parent account id, when the contact belongs to one.
    :type parent_account_id: str or None
    :param is_active: Whether ``statecode`` is 0.
    :type is_active: bool
    :param subject: Identity provider subject stored on the contact, when configured.
    :type subject: str or None
    """

    contact_id: str
    email: Optional[str] = None
    is_admin: bool = False
    parent_account_id: Optional[str] = None
    is_active: bool = True
    subject: Optional[str] = None

    @classmethod
    def from_api(cls, raw: Dict[str, Any], subject_field: Optional[str] = None) -> "ContactRecord":
        return cls(
            contact_id=str(raw.get("contactid") or ""),
            email=raw.get("emailaddress1") or None,
            is_admin=raw.get(CONTACT_ADMIN_FIELD) is True,
            parent_account_id=raw.get(CONTACT_PARENT_ACCOUNT_FIELD) or None,
            is_active=raw.get("statecode", 0) == 0,
            subject=(raw.get(subject_field) or None) if subject_field else None,
        )
