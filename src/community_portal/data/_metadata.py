# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Schema and customization metadata reads for the Dataverse Web API.

This module provides mixin functionality for reading table definitions,
lookup relationships and the form/view documents the portal is driven by.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class _MetadataOperationsMixin:
    """
    Mixin providing metadata reads.

    This mixin is designed to be used with _ODataClient and depends on:
    - self.api: The API base URL
    - self._headers(): Method to get auth headers
    - self._request(): Method to make HTTP requests
    - self._metadata_cache: TTL cache for table definitions
    """

    def _get_entity_definition(self, logical_name: str) -> Dict[str, Any]:
        """
        Retrieve a table definition (entity set, primary id and name columns), cached.

        :param logical_name: Table logical name, e.g. ``"cp_idea"``.
        :type logical_name: ``str``

        :return: ``EntityDefinitions`` row.
        :rtype: ``dict[str, Any]``

        :raises NotFoundError: If no table has that logical name.
        :raises UpstreamError: If the Web API request fails.
        """
        key = ("definition", logical_name.lower())
        cached = self._metadata_cache.get(key)
        if cached is not None:
            return cached
        url = f"{self.api}/EntityDefinitions(LogicalName='{self._escape_odata_quotes(logical_name.lower())}')"
        params = {"$select": "LogicalName,EntitySetName,PrimaryIdAttribute,PrimaryNameAttribute"}
        r = self._request("get", url, headers=self._headers(), params=params, not_found=f"Table {logical_name}")
        definition = r.json()
        self._metadata_cache.set(key, definition)
        return definition

    def _entity_set_from_logical(self, logical_name: str) -> str:
        return self._get_entity_definition(logical_name)["EntitySetName"]

    def _get_many_to_one_relationships(self, logical_name: str) -> List[Dict[str, Any]]:
        """
        Retrieve the lookup relationships of a table.

        :param logical_name: Referencing table logical name.
        :type logical_name: ``str``

        :return: Rows with ``ReferencingAttribute``, ``ReferencingEntityNavigationPropertyName``
            and ``ReferencedEntity``.
        :rtype: ``list[dict[str, Any]]``
        """
        url = f"{self.api}/EntityDefinitions(LogicalName='{self._escape_odata_quotes(logical_name.lower())}')/ManyToOneRelationships"
        params = {
            "$select": "SchemaName,ReferencingAttribute,ReferencingEntityNavigationPropertyName,ReferencedEntity,ReferencedAttribute"
        }
        r = self._request("get", url, headers=self._headers(), params=params, not_found=f"Table {logical_name}")
        return r.json().get("value", [])

    def _get_relationship(self, schema_name: str) -> Optional[Dict[str, Any]]:
        """
        Retrieve relationship metadata by schema name.

        :param schema_name: The schema name of the relationship.
        :type schema_name: ``str``

        :return: Relationship metadata dictionary, or None if not found.
        :rtype: ``dict[str, Any]`` | ``None``
        """
        url = f"{self.api}/RelationshipDefinitions"
        params = {"$filter": f"SchemaName eq '{self._escape_odata_quotes(schema_name)}'"}
        r = self._request("get", url, headers=self._headers(), params=params)
        results = r.json().get("value", [])
        return results[0] if results else None

    def _get_system_form(self, form_id: str) -> Dict[str, Any]:
        url = f"{self.api}/systemforms({form_id})"
        params = {"$select": "formid,name,description,formxml"}
        r = self._request("get", url, headers=self._headers(), params=params, not_found=f"Form {form_id}")
        return r.json()

    def _get_saved_query(self, view_id: str) -> Dict[str, Any]:
        url = f"{self.api}/savedqueries({view_id})"
        params = {"$select": "savedqueryid,name,description,layoutxml,fetchxml"}
        r = self._request("get", url, headers=self._headers(), params=params, not_found=f"View {view_id}")
        return r.json()
