# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Caller contact verification, self-service profile and organization directory namespace."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional

from ..common.constants import (
    CONTACT_COLUMNS,
    CONTACT_SET,
    METADATA_PASSTHROUGH_KEYS,
    ORGANIZATION_CONTACT_COLUMNS,
    ORGANIZATION_CONTACT_ORDER,
    PROFILE_COLUMNS,
    PROFILE_WRITABLE_FIELDS,
)
from ..core._error_codes import (
    NOT_FOUND_RECORD,
    OWNERSHIP_CONTACT_MISMATCH,
    OWNERSHIP_UNVERIFIABLE,
    VALIDATION_BODY,
    VALIDATION_FIELD_SECURITY,
)
from ..core.errors import AuthorizationError, ConfigurationError, NotFoundError, ValidationError
from ..core.identity import UserIdentity
from ..core.results import OrganizationResult, ProfileResult
from ..data._field_security import ensure_columns_allowed
from ..data._odata import sanitize_guid
from ..data._security import organization_contacts_filter, self_contact_filter
from ..models.contact import ContactRecord

if TYPE_CHECKING:
    from ..client import PortalClient

logger = logging.getLogger(__name__)


class ContactOperations:
    """
    Binds a caller-supplied contact id to the authenticated identity.

    Accessed via ``client.contacts``. The contact id travels with every entity
    request and is never trusted until :meth:`verify` has matched it against the
    token.

    The namespace also serves the caller's own profile, which is looked up from
    the token alone, and the organization directory for portal administrators.
    """

    def __init__(self, client: "PortalClient") -> None:
        self._client = client

    def verify(self, contact_guid: str, identity: UserIdentity) -> ContactRecord:
        """
        Fetch the contact by exact id and confirm it belongs to ``identity``.

        When ``contact_subject_field`` is configured the stored subject must equal the
        token subject; otherwise the contact email must equal the token email, ignoring case.

        :param contact_guid: Contact id supplied by the caller.
        :type contact_guid: str
        :param identity: Decoded bearer token.
        :type identity: ~community_portal.core.identity.UserIdentity
        :return: The verified contact.
        :rtype: ~community_portal.models.contact.ContactRecord
        :raises ~community_portal.core.errors.ValidationError: If ``contact_guid`` is not a GUID.
        :raises ~community_portal.core.errors.AuthorizationError: If the contact is missing,
            inactive or belongs to someone else. These cases are indistinguishable to the caller.
        """
        contact_id = sanitize_guid(contact_guid, "Contact GUID")
        subject_field = self._client._config.contact_subject_field
        columns = list(CONTACT_COLUMNS)
        if subject_field:
            columns.append(subject_field)

        try:
            raw = self._client._get_odata()._get_contact(contact_id, columns)
        except NotFoundError as exc:
            logger.warning("Ownership check failed: contact %s does not exist (subject %s)", contact_id, identity.subject)
            raise AuthorizationError("Contact does not belong to caller", subcode=OWNERSHIP_CONTACT_MISMATCH) from exc

        contact = ContactRecord.from_api(raw, subject_field)
        if not contact.is_active:
            logger.warning("Ownership check failed: contact %s is inactive", contact_id)
            raise AuthorizationError("Contact does not belong to caller", subcode=OWNERSHIP_CONTACT_MISMATCH)

        if subject_field:
            matched = bool(contact.subject) and contact.subject == identity.subject
        elif identity.email and contact.email:
            matched = contact.email.strip().lower() == identity.email.strip().lower()
        else:
            logger.warning("Ownership check failed: no email claim or contact email for %s", contact_id)
            raise AuthorizationError("Contact ownership cannot be verified", subcode=OWNERSHIP_UNVERIFIABLE)

        if not matched:
            logger.warning("Ownership check failed: contact %s does not belong to subject %s", contact_id, identity.subject)
            raise AuthorizationError("Contact does not belong to caller", subcode=OWNERSHIP_CONTACT_MISMATCH)

        logger.debug("Verified contact %s for subject %s", contact_id, identity.subject)
        return contact

    def organization_contact_ids(self, account_id: str) -> List[str]:
        """Active contact ids under ``account_id``."""
        return self._client._get_odata()._list_account_contact_ids(account_id)

    # ----------------------------------------------------------------- profile

    def profile(self, identity: UserIdentity) -> ProfileResult:
        """
        The caller's own contact, found by token email (or subject, when configured).

        Inactive contacts read as absent.

        :raises ~community_portal.core.errors.AuthorizationError: If the token carries
            nothing to look the contact up by.
        """
        raw = self._find_own(identity)
        if raw is not None and raw.get("statecode", 0) != 0:
            raw = None
        return ProfileResult(contact=raw)

    def save_profile(self, identity: UserIdentity, payload: Any) -> ProfileResult:
        """
        Create the caller's contact, or update its name and phone.

        Only ``firstname``, ``lastname`` and ``telephone1`` are written. ``emailaddress1``
        always comes from the token; a body value is accepted only when it matches.

        :param identity: Decoded bearer token.
        :type identity: ~community_portal.core.identity.UserIdentity
        :param payload: Request body.
        :type payload: dict
        :return: The saved contact and whether it was created.
        :rtype: ~community_portal.core.results.ProfileResult
        :raises ~community_portal.core.errors.ValidationError: On a malformed body, a
            column outside the profile, or a foreign email.
        :raises ~community_portal.core.errors.AuthorizationError: If the token has no email
            claim or the caller's contact is inactive.
        """
        if not isinstance(payload, Mapping):
            raise ValidationError("Request body must be a JSON object", subcode=VALIDATION_BODY)
        ensure_columns_allowed(payload, PROFILE_WRITABLE_FIELDS, "contact")
        if not identity.email:
            logger.warning("Profile save refused: token for subject %s has no email claim", identity.subject)
            raise AuthorizationError("Contact ownership cannot be verified", subcode=OWNERSHIP_UNVERIFIABLE)

        body: Dict[str, Any] = {}
        for key, value in payload.items():
            if key in METADATA_PASSTHROUGH_KEYS:
                continue
            name = key.lower()
            if value is not None and not isinstance(value, str):
                raise ValidationError(f"{key} must be a string", subcode=VALIDATION_BODY)
            if name == "emailaddress1":
                if (value or "").strip().lower() != identity.email.strip().lower():
                    logger.warning("Profile save refused: subject %s sent a foreign email", identity.subject)
                    raise ValidationError(
                        "Email must match the signed-in user",
                        subcode=VALIDATION_FIELD_SECURITY,
                        violating_fields=[key],
                    )
                continue
            body[name] = value.strip() if isinstance(value, str) else None

        od = self._client._get_odata()
        existing = self._find_own(identity)
        if existing is None:
            body["emailaddress1"] = identity.email
            subject_field = self._client._config.contact_subject_field
            if subject_field:
                body[subject_field] = identity.subject
            contact_id = od._create(CONTACT_SET, body)
            logger.info("Created contact %s for subject %s", contact_id, identity.subject)
            created = True
        else:
            if existing.get("statecode", 0) != 0:
                logger.warning("Profile save refused: contact %s is inactive", existing.get("contactid"))
                raise AuthorizationError("Contact does not belong to caller", subcode=OWNERSHIP_CONTACT_MISMATCH)
            if not body:
                raise ValidationError("No fields to update", subcode=VALIDATION_BODY)
            contact_id = sanitize_guid(existing.get("contactid"), "Contact GUID")
            od._update(CONTACT_SET, contact_id, body)
            logger.info("Updated contact %s for subject %s", contact_id, identity.subject)
            created = False
        return ProfileResult(contact=od._get_contact(contact_id, PROFILE_COLUMNS), created=created)

    def _find_own(self, identity: UserIdentity) -> Optional[Dict[str, Any]]:
        subject_field = self._client._config.contact_subject_field
        columns = list(PROFILE_COLUMNS)
        if subject_field:
            columns.append(subject_field)
            condition = self_contact_filter(subject_field, identity.subject)
        elif identity.email:
            condition = self_contact_filter("emailaddress1", identity.email.strip())
        else:
            logger.warning("Profile lookup refused: token for subject %s has no email claim", identity.subject)
            raise AuthorizationError("Contact ownership cannot be verified", subcode=OWNERSHIP_UNVERIFIABLE)
        return self._client._get_odata()._get_first(CONTACT_SET, filter=condition, select=columns)

    # ------------------------------------------------------------ organization

    def organization(
        self,
        contact: ContactRecord,
        mode: Optional[str] = None,
        contact_id: Optional[str] = None,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> OrganizationResult:
        """
        Contacts of the caller's parent account, for portal administrators.

        ``mode="dynamic"`` shapes the list with the configured contact view,
        ``mode="form"`` returns the configured contact form, and ``contact_id`` reads
        one contact of the account. Anything else lists the account's contacts.

        :param contact: The caller's verified contact.
        :type contact: ~community_portal.models.contact.ContactRecord
        :raises ~community_portal.core.errors.AuthorizationError: If the caller is not an
            administrator or has no parent account.
        :raises ~community_portal.core.errors.NotFoundError: If ``contact_id`` is not a
            contact of the account.
        :raises ~community_portal.core.errors.ConfigurationError: If the mode needs a view
            or form that is not configured.
        """
        scope = organization_contacts_filter(contact)
        account_id = contact.parent_account_id
        od = self._client._get_odata()
        cfg = self._client._config

        if mode == "form":
            if not cfg.contact_form_guid:
                raise ConfigurationError("Contact form is not configured")
            form = self._client._parser.parse_form(od._get_system_form(cfg.contact_form_guid))
            return OrganizationResult(account_id=account_id, mode="form", form_metadata=form.to_dict())

        if contact_id and mode != "dynamic":
            key = sanitize_guid(contact_id, "Contact GUID")
            record = od._get_first(
                CONTACT_SET,
                filter=f"contactid eq {key} and {scope}",
                select=list(ORGANIZATION_CONTACT_COLUMNS),
            )
            if record is None:
                logger.warning("Admin %s has no access to contact %s", contact.contact_id, key)
                raise NotFoundError("Contact not found", subcode=NOT_FOUND_RECORD)
            return OrganizationResult(account_id=account_id, mode="single", contact=record)

        records = self._client.records
        page, size = records._window(page, page_size)
        select: List[str] = list(ORGANIZATION_CONTACT_COLUMNS)
        expand: List[str] = []
        view = None
        if mode == "dynamic":
            if not cfg.contact_view_guid:
                raise ConfigurationError("Contact view is not configured")
            view = self._client._parser.parse_view(od._get_saved_query(cfg.contact_view_guid))
            records._ensure_schema(od, "contact")
            select, expand = records._query_shape("contact", "contactid", [c.name for c in view.columns], None)

        result = od._get_multiple(
            CONTACT_SET,
            select=select,
            filter=scope,
            expand=expand,
            orderby=ORGANIZATION_CONTACT_ORDER,
            page=page,
            page_size=size,
        )
        return OrganizationResult(
            account_id=account_id,
            mode="dynamic" if view is not None else "list",
            contacts=result.records,
            view_metadata=view.to_dict() if view is not None else None,
            page=page,
            page_size=size,
            total_count=result.total_count,
            has_more=result.has_more,
        )
