# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Lookup column resolution.

Writes to a lookup column go through its navigation property
(``cp_Contact@odata.bind``) and reference the target by entity set
(``/contacts(<id>)``). Neither name is derivable from the column name with
certainty, so resolution prefers, in order: the static table of well-known
lookups, mappings read from the live schema, and only then naming-convention
inference. Inferred mappings are never used for writes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from ..common.constants import (
    IRREGULAR_ENTITY_SETS,
    PRIMARY_NAME_ATTRIBUTES,
    STANDARD_ENTITIES,
    WELL_KNOWN_LOOKUP_ENTITY_SETS,
    WELL_KNOWN_LOOKUP_TARGETS,
    WELL_KNOWN_NAVIGATION_PROPERTIES,
)
from ..core.cache import TTLCache
from ..models.entity_config import EntityConfiguration, OwnershipPattern

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LookupMapping:
    """
    How one lookup column is read and written.

    :param attribute: Lookup column logical name, e.g. ``"cp_contact"``.
    :type attribute: str
    :param navigation_property: Single-valued navigation property, e.g. ``"cp_Contact"``.
    :type navigation_property: str
    :param referenced_entity: Logical name of the target table, if known.
    :type referenced_entity: str or None
    :param entity_set: Entity set of the target table, if known.
    :type entity_set: str or None
    :param validated: Whether the mapping comes from the static table or the live schema.
    :type validated: bool
    """

    attribute: str
    navigation_property: str
    referenced_entity: Optional[str] = None
    entity_set: Optional[str] = None
    validated: bool = False

    @property
    def bind_key(self) -> str:
        return f"{self.navigation_property}@odata.bind"

    def bind(self, record_id: Optional[str], entity_set: Optional[str] = None) -> Tuple[str, Optional[str]]:
        """
        The ``@odata.bind`` pair assigning ``record_id``.

        ``_cp_contact_value = <id>`` becomes ``("cp_Contact@odata.bind", "/contacts(<id>)")``;
        a ``None`` id yields a ``None`` value, which disassociates.
        """
        if record_id is None:
            return self.bind_key, None
        return self.bind_key, f"/{entity_set or self.entity_set}({record_id})"


def lookup_base_name(field_name: str) -> str:
    """``_cp_contact_value`` -> ``cp_contact``; plain names are lowercased."""
    name = (field_name or "").strip().lower()
    if name.startswith("_") and name.endswith("_value") and len(name) > len("__value"):
        return name[1:-6]
    return name


def lookup_value_name(field_name: str) -> str:
    """``cp_contact`` -> ``_cp_contact_value``."""
    return f"_{lookup_base_name(field_name)}_value"


def pluralize(logical_name: str) -> str:
    """Entity set name for a table logical name."""
    name = logical_name.lower()
    if name in IRREGULAR_ENTITY_SETS:
        return IRREGULAR_ENTITY_SETS[name]
    if name.endswith("y") and len(name) > 1 and name[-2] not in "aeiou":
        return name[:-1] + "ies"
    return name + "s"


class NavigationResolver:
    """
    Resolve navigation properties and entity sets for lookup columns.

    Most methods take the owning table either as ``entity`` or through ``config``;
    ``config`` additionally contributes its ownership column as a known lookup.

    :param schema_cache: Cache of validated mappings, keyed by entity logical name.
    :type schema_cache: ~community_portal.core.cache.TTLCache
    :param prefixes: Publisher prefixes of custom columns.
    :type prefixes: tuple[str, ...]
    """

    def __init__(self, schema_cache: TTLCache, prefixes: Tuple[str, ...] = ("cp_",)) -> None:
        self._schemas = schema_cache
        self.prefixes = tuple(p.lower() for p in prefixes)

    # ------------------------------------------------------------- live schema

    def register_schema(
        self,
        entity_logical_name: str,
        relationships: Iterable[Mapping[str, Any]],
    ) -> Dict[str, LookupMapping]:
        """
        Cache the lookup mappings of one table from its many-to-one relationships.

        :param entity_logical_name: Table whose lookups are described.
        :type entity_logical_name: str
        :param relationships: ``ManyToOneRelationships`` rows with ``ReferencingAttribute``,
            ``ReferencingEntityNavigationPropertyName`` and ``ReferencedEntity``.
        :type relationships: Iterable[Mapping[str, Any]]
        :return: Mappings keyed by lookup column.
        :rtype: dict[str, LookupMapping]
        """
        mappings: Dict[str, LookupMapping] = {}
        for rel in relationships:
            attribute = (rel.get("ReferencingAttribute") or "").lower()
            nav = rel.get("ReferencingEntityNavigationPropertyName")
            if not attribute or not nav or attribute in mappings:
                # polymorphic lookups (customer, regarding) list one relationship per target; first wins
                continue
            referenced = (rel.get("ReferencedEntity") or "").lower() or None
            entity_set = pluralize(referenced) if referenced else None
            mappings[attribute] = LookupMapping(attribute, nav, referenced, entity_set, validated=True)
        self._schemas.set(entity_logical_name.lower(), mappings)
        logger.debug("Registered %d lookup mappings for %s", len(mappings), entity_logical_name)
        return mappings

    def has_schema(self, entity_logical_name: str) -> bool:
        return entity_logical_name.lower() in self._schemas

    def _schema(self, entity: Optional[str], config: Optional[EntityConfiguration]) -> Dict[str, LookupMapping]:
        name = entity or (config.entity_logical_name if config is not None else None)
        if not name:
            return {}
        return self._schemas.get(name.lower()) or {}

    def is_lookup(
        self,
        field_name: str,
        config: Optional[EntityConfiguration] = None,
        entity: Optional[str] = None,
    ) -> bool:
        base = lookup_base_name(field_name)
        if field_name.lower() != base or base in WELL_KNOWN_NAVIGATION_PROPERTIES:
            return True
        if config is not None and entity is None and base == config.ownership_field:
            return True
        return base in self._schema(entity, config)

    # --------------------------------------------------------------- resolution

    def resolve(
        self,
        field_name: str,
        config: Optional[EntityConfiguration] = None,
        entity: Optional[str] = None,
    ) -> Optional[LookupMapping]:
        """
        Best available mapping for a lookup column, validated or not.

        :return: The mapping, or ``None`` when nothing applies.
        :rtype: LookupMapping or None
        """
        base = lookup_base_name(field_name)
        if not base:
            return None

        if base in WELL_KNOWN_NAVIGATION_PROPERTIES:
            return LookupMapping(
                base,
                WELL_KNOWN_NAVIGATION_PROPERTIES[base],
                WELL_KNOWN_LOOKUP_TARGETS.get(base),
                WELL_KNOWN_LOOKUP_ENTITY_SETS.get(base),
                validated=True,
            )

        schema = self._schema(entity, config)
        if base in schema:
            return schema[base]

        nav = self._infer_navigation_property(base)
        if nav is None:
            return None
        owner_config = config if entity is None else None
        target = self._infer_target(base, owner_config)
        return LookupMapping(base, nav, target, pluralize(target) if target else None)

    def resolve_navigation_property(self, field_name: str, config: Optional[EntityConfiguration] = None) -> Optional[str]:
        mapping = self.resolve(field_name, config)
        return mapping.navigation_property if mapping else None

    def resolve_entity_set(self, field_name: str, config: Optional[EntityConfiguration] = None) -> Optional[str]:
        """Entity set of the table a lookup column points at."""
        mapping = self.resolve(field_name, config)
        return mapping.entity_set if mapping else None

    def resolve_for_write(self, field_name: str, config: EntityConfiguration) -> Optional[LookupMapping]:
        """Mapping usable for ``@odata.bind``; inferred mappings are refused."""
        mapping = self.resolve(field_name, config)
        if mapping is None or not mapping.validated or not mapping.entity_set:
            logger.warning(
                "No validated navigation property for %s on %s",
                field_name,
                config.entity_logical_name,
            )
            return None
        return mapping

    def navigation_index(self, fields: Iterable[str], config: EntityConfiguration) -> Dict[str, str]:
        """Lowercased validated navigation property -> lookup column, for those of ``fields`` that are lookups."""
        index: Dict[str, str] = {}
        for name in fields:
            mapping = self.resolve(name, config)
            if mapping is not None and mapping.validated:
                index[mapping.navigation_property.lower()] = mapping.attribute
        return index

    def expand_clause(
        self,
        field_name: str,
        config: Optional[EntityConfiguration] = None,
        entity: Optional[str] = None,
    ) -> Optional[str]:
        """``$expand`` item selecting the primary name of the referenced record."""
        mapping = self.resolve(field_name, config, entity)
        if mapping is None:
            return None
        return f"{mapping.navigation_property}($select={self._primary_name(mapping.referenced_entity)})"

    # -------------------------------------------------------------- heuristics

    def _custom_prefix(self, name: str) -> Optional[str]:
        for prefix in self.prefixes:
            if name.startswith(prefix) and len(name) > len(prefix):
                return prefix
        return None

    def _infer_navigation_property(self, base: str) -> Optional[str]:
        prefix = self._custom_prefix(base)
        if prefix is None:
            return None
        rest = base[len(prefix) :]
        return prefix + rest[:1].upper() + rest[1:]

    def _infer_target(self, base: str, config: Optional[EntityConfiguration]) -> Optional[str]:
        if config is not None and base == config.ownership_field:
            return "contact" if config.ownership is OwnershipPattern.CONTACT else "account"
        prefix = self._custom_prefix(base)
        if prefix is None:
            return None
        stripped = base[len(prefix) :]
        for candidate in (stripped, stripped[:-2] if stripped.endswith("id") else None):
            if candidate and candidate in STANDARD_ENTITIES:
                return candidate
        return base

    def _primary_name(self, entity: Optional[str]) -> str:
        if entity in PRIMARY_NAME_ATTRIBUTES:
            return PRIMARY_NAME_ATTRIBUTES[entity]
        prefix = self._custom_prefix(entity or "")
        return f"{prefix}name" if prefix else "fullname"
