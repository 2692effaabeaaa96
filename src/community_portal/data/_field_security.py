# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Write-payload field validation.

A payload may only touch columns that appear on the entity's form, and never
a system-managed column. Validation is all-or-nothing: the caller rejects the
whole write on any violation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Set, Tuple

from ..common.constants import METADATA_PASSTHROUGH_KEYS, ODATA_BIND_SUFFIX, SYSTEM_MANAGED_FIELDS
from ..core._error_codes import VALIDATION_FIELD_SECURITY
from ..core.errors import ValidationError
from ..models.form import FormMetadata
from ._navigation import lookup_base_name, lookup_value_name

logger = logging.getLogger(__name__)

# (entity, field present on the form) -> fields implicitly writable alongside it.
# Contact full name is computed from first and last name; forms often show only one.
IMPLIED_FIELDS: Dict[Tuple[str, str], Tuple[str, ...]] = {
    ("contact", "lastname"): ("firstname",),
}


@dataclass(frozen=True)
class FieldValidationResult:
    valid: bool
    violating_fields: List[str] = field(default_factory=list)


def allowed_fields(form: FormMetadata, entity_logical_name: str) -> FrozenSet[str]:
    """
    Lowercased columns a payload may write for ``form``.

    Lookup controls also admit their ``_<name>_value`` form. Subgrids contribute nothing.
    """
    allowed: Set[str] = set()
    for control in form.iter_controls():
        name = control.datafieldname.lower()
        allowed.add(name)
        if control.is_lookup:
            allowed.add(lookup_value_name(name))
    entity = entity_logical_name.lower()
    for (implied_entity, trigger), extras in IMPLIED_FIELDS.items():
        if implied_entity == entity and trigger in allowed:
            allowed.update(extras)
    return frozenset(allowed)


def is_system_managed(key: str) -> bool:
    name = key[: -len(ODATA_BIND_SUFFIX)] if key.endswith(ODATA_BIND_SUFFIX) else key
    return lookup_base_name(name) in SYSTEM_MANAGED_FIELDS


def bind_attribute(
    key: str,
    allowed: FrozenSet[str],
    navigation: Optional[Mapping[str, str]] = None,
) -> Optional[str]:
    """
    Form column written by an ``@odata.bind`` key, or ``None``.

    The navigation property must either equal a form column (``cp_Contact`` for
    ``cp_contact``) or be the validated navigation property of one
    (``parentcustomerid_account`` for ``parentcustomerid``).
    """
    nav = key[: -len(ODATA_BIND_SUFFIX)].lower()
    if nav in allowed:
        return nav
    attribute = (navigation or {}).get(nav)
    return attribute if attribute in allowed else None


def validate_fields(
    payload: Mapping[str, Any],
    form: FormMetadata,
    entity_logical_name: str,
    navigation: Optional[Mapping[str, str]] = None,
) -> FieldValidationResult:
    """
    Check every key of ``payload`` against the deny-list and the form's allowed set.

    :param payload: Incoming write body.
    :type payload: Mapping[str, Any]
    :param form: Parsed form of the entity.
    :type form: ~community_portal.models.form.FormMetadata
    :param entity_logical_name: Logical name of the entity being written.
    :type entity_logical_name: str
    :param navigation: Validated navigation properties of the form's lookups, lowercased,
        mapped to their lookup column. Bind keys are checked against it.
    :type navigation: Mapping[str, str] or None
    :return: Whether the payload is valid, with the offending keys.
    :rtype: FieldValidationResult
    """
    return validate_columns(payload, allowed_fields(form, entity_logical_name), navigation)


def validate_columns(
    payload: Mapping[str, Any],
    allowed: FrozenSet[str],
    navigation: Optional[Mapping[str, str]] = None,
) -> FieldValidationResult:
    """Like :func:`validate_fields`, against an explicit set of lowercased writable columns."""
    violations: List[str] = []
    for key in payload:
        if key in METADATA_PASSTHROUGH_KEYS:
            continue
        if is_system_managed(key):
            violations.append(key)
            continue
        if key.endswith(ODATA_BIND_SUFFIX):
            if bind_attribute(key, allowed, navigation) is None:
                violations.append(key)
            continue
        if key.lower() not in allowed:
            violations.append(key)
    return FieldValidationResult(valid=not violations, violating_fields=sorted(violations))


def ensure_fields_allowed(
    payload: Mapping[str, Any],
    form: FormMetadata,
    entity_logical_name: str,
    navigation: Optional[Mapping[str, str]] = None,
) -> None:
    """Raise :class:`~community_portal.core.errors.ValidationError` listing every violation."""
    _raise_on_violations(validate_fields(payload, form, entity_logical_name, navigation), entity_logical_name)


def ensure_columns_allowed(payload: Mapping[str, Any], allowed: FrozenSet[str], entity_logical_name: str) -> None:
    _raise_on_violations(validate_columns(payload, allowed), entity_logical_name)


def _raise_on_violations(result: FieldValidationResult, entity_logical_name: str) -> None:
    if not result.valid:
        logger.warning(
            "Rejected write to %s: fields not permitted: %s",
            entity_logical_name,
            ", ".join(result.violating_fields),
        )
        raise ValidationError(
            "Payload contains fields that are not permitted",
            subcode=VALIDATION_FIELD_SECURITY,
            violating_fields=result.violating_fields,
        )
