# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

import unittest
from unittest.mock import MagicMock

from community_portal.core.errors import UpstreamError, ValidationError
from community_portal.data._odata import _ODataClient, is_guid, sanitize_guid

GUID = "11111111-2222-3333-4444-555555555555"


def _make_odata_client() -> _ODataClient:
    """Return an _ODataClient with HTTP calls mocked out."""
    mock_auth = MagicMock()
    mock_auth._acquire_token.return_value = MagicMock(access_token="token")
    client = _ODataClient(mock_auth, "https://example.crm.dynamics.com")
    client._request = MagicMock()
    return client


def _response(body=None, headers=None, status=200):
    r = MagicMock()
    r.status_code = status
    r.headers = headers or {}
    r.json.return_value = body or {}
    return r


class TestGuidHelpers(unittest.TestCase):
    def test_sanitize_strips_braces_and_lowercases(self):
        self.assertEqual(sanitize_guid("{" + GUID.upper() + "}"), GUID)

    def test_invalid_guid_rejected(self):
        for value in (None, "", "abc", GUID + "0", f"{GUID}' or 1 eq 1"):
            with self.subTest(value=value):
                self.assertFalse(is_guid(value))
                with self.assertRaises(ValidationError):
                    sanitize_guid(value, "Contact GUID")


class TestGetMultiple(unittest.TestCase):
    def setUp(self):
        self.od = _make_odata_client()

    def test_first_page_query(self):
        self.od._request.return_value = _response(
            {"value": [{"id": 1}], "@odata.count": 7, "@odata.nextLink": "https://next/1"}
        )
        page = self.od._get_multiple(
            "cp_ideas",
            select=["cp_ideaid", "cp_name"],
            filter="statecode eq 0",
            expand=["cp_Contact($select=fullname)"],
            orderby="createdon desc",
            page_size=25,
        )
        method, url = self.od._request.call_args.args
        kwargs = self.od._request.call_args.kwargs
        self.assertEqual((method, url), ("get", "https://example.crm.dynamics.com/api/data/v9.2/cp_ideas"))
        self.assertEqual(
            kwargs["params"],
            {
                "$count": "true",
                "$select": "cp_ideaid,cp_name",
                "$filter": "statecode eq 0",
                "$expand": "cp_Contact($select=fullname)",
                "$orderby": "createdon desc",
            },
        )
        self.assertTrue(kwargs["headers"]["Prefer"].startswith("odata.maxpagesize=25,"))
        self.assertIn("FormattedValue", kwargs["headers"]["Prefer"])
        self.assertEqual(page.records, [{"id": 1}])
        self.assertEqual(page.total_count, 7)
        self.assertTrue(page.has_more)

    def test_later_page_follows_next_links(self):
        self.od._request.side_effect = [
            _response({"value": [1], "@odata.count": 5, "@odata.nextLink": "https://next/2"}),
            _response({"value": [2], "@odata.nextLink": "https://next/3"}),
            _response({"value": [3]}),
        ]
        page = self.od._get_multiple("cp_ideas", page=3, page_size=1)
        self.assertEqual(self.od._request.call_args_list[1].args, ("get", "https://next/2"))
        self.assertEqual(self.od._request.call_args_list[2].args, ("get", "https://next/3"))
        self.assertEqual(page.records, [3])
        self.assertEqual(page.total_count, 5)
        self.assertFalse(page.has_more)

    def test_page_past_the_end_is_empty(self):
        self.od._request.return_value = _response({"value": [1], "@odata.count": 1})
        page = self.od._get_multiple("cp_ideas", page=4)
        self.assertEqual(page.records, [])
        self.assertEqual(page.total_count, 1)
        self.assertFalse(page.has_more)
        self.assertEqual(self.od._request.call_count, 1)


class TestSingleRecordCalls(unittest.TestCase):
    def setUp(self):
        self.od = _make_odata_client()

    def test_get_first_returns_first_or_none(self):
        self.od._request.return_value = _response({"value": [{"a": 1}]})
        self.assertEqual(self.od._get_first("cp_ideas", filter="x"), {"a": 1})
        self.assertEqual(self.od._request.call_args.kwargs["params"]["$top"], 1)
        self.od._request.return_value = _response({"value": []})
        self.assertIsNone(self.od._get_first("cp_ideas", filter="x"))

    def test_create_reads_guid_from_entity_id_header(self):
        self.od._request.return_value = _response(
            headers={"OData-EntityId": f"https://example.crm.dynamics.com/api/data/v9.2/cp_ideas({GUID})"}, status=204
        )
        self.assertEqual(self.od._create("cp_ideas", {"cp_name": "x"}), GUID)
        self.assertEqual(self.od._request.call_args.kwargs["json"], {"cp_name": "x"})

    def test_create_without_guid_header(self):
        self.od._request.return_value = _response(status=204)
        with self.assertRaises(UpstreamError):
            self.od._create("cp_ideas", {"cp_name": "x"})

    def test_update_uses_etag_or_star(self):
        self.od._update("cp_ideas", GUID, {"cp_name": "x"})
        self.assertEqual(self.od._request.call_args.kwargs["headers"]["If-Match"], "*")
        self.od._update("cp_ideas", GUID, {"cp_name": "x"}, etag='W/"42"')
        self.assertEqual(self.od._request.call_args.kwargs["headers"]["If-Match"], 'W/"42"')
        self.assertEqual(self.od._request.call_args.args, ("patch", f"{self.od.api}/cp_ideas({GUID})"))

    def test_delete(self):
        self.od._delete("cp_ideas", GUID)
        self.assertEqual(self.od._request.call_args.args, ("delete", f"{self.od.api}/cp_ideas({GUID})"))
        self.assertEqual(self.od._request.call_args.kwargs["not_found"], "Record")

    def test_list_entity_configs(self):
        self.od._request.return_value = _response({"value": [{"cp_name": "Ideas"}]})
        self.assertEqual(self.od._list_entity_configs(), [{"cp_name": "Ideas"}])
        params = self.od._request.call_args.kwargs["params"]
        self.assertEqual(params["$filter"], "statecode eq 0")
        self.assertIn("cp_entitylogicalname", params["$select"])

    def test_account_contact_ids(self):
        self.od._request.return_value = _response({"value": [{"contactid": "c1"}, {"contactid": "c2"}, {}]})
        self.assertEqual(self.od._list_account_contact_ids("a1"), ["c1", "c2"])
        self.assertEqual(
            self.od._request.call_args.kwargs["params"]["$filter"],
            "_parentcustomerid_value eq 'a1' and statecode eq 0",
        )


class TestMetadataReads(unittest.TestCase):
    def setUp(self):
        self.od = _make_odata_client()

    def test_entity_definition_is_cached(self):
        self.od._request.return_value = _response({"LogicalName": "cp_idea", "EntitySetName": "cp_ideas", "PrimaryIdAttribute": "cp_ideaid"})
        self.assertEqual(self.od._entity_set_from_logical("cp_idea"), "cp_ideas")
        self.assertEqual(self.od._entity_set_from_logical("CP_IDEA"), "cp_ideas")
        self.assertEqual(self.od._request.call_count, 1)
        self.assertIn("EntityDefinitions(LogicalName='cp_idea')", self.od._request.call_args.args[1])

    def test_relationship_lookup(self):
        self.od._request.return_value = _response({"value": [{"ReferencingAttribute": "cp_idea"}]})
        self.assertEqual(self.od._get_relationship("cp_idea_cp_comment"), {"ReferencingAttribute": "cp_idea"})
        self.assertEqual(
            self.od._request.call_args.kwargs["params"]["$filter"],
            "SchemaName eq 'cp_idea_cp_comment'",
        )
        self.od._request.return_value = _response({"value": []})
        self.assertIsNone(self.od._get_relationship("missing"))

    def test_many_to_one_relationships(self):
        self.od._request.return_value = _response({"value": [{"ReferencingAttribute": "cp_contact"}]})
        self.assertEqual(self.od._get_many_to_one_relationships("cp_idea"), [{"ReferencingAttribute": "cp_contact"}])
        self.assertTrue(self.od._request.call_args.args[1].endswith("/ManyToOneRelationships"))
