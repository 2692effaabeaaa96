# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

import unittest
from unittest.mock import MagicMock

from azure.core.credentials import TokenCredential

from community_portal.client import PortalClient
from community_portal.core.config import PortalConfig
from community_portal.core.errors import NotFoundError
from community_portal.operations.configs import ConfigOperations

ROWS = [
    {
        "cp_entityconfigid": "cfg-2",
        "cp_name": "Requests",
        "cp_entitylogicalname": "cp_request",
        "cp_contactrelationfield": "cp_contact",
        "cp_showinmenu": True,
        "cp_menuorder": 2,
    },
    {
        "cp_entityconfigid": "cfg-1",
        "cp_name": "Ideas",
        "cp_entitylogicalname": "cp_idea",
        "cp_contactrelationfield": "cp_contact",
        "cp_showinmenu": True,
        "cp_menuorder": 1,
    },
    {
        "cp_entityconfigid": "cfg-3",
        "cp_name": "Settings",
        "cp_entitylogicalname": "cp_setting",
        "cp_showinmenu": True,
        "cp_menuorder": 3,
        "cp_requiresadmin": True,
    },
    {
        "cp_entityconfigid": "cfg-4",
        "cp_name": "Categories",
        "cp_entitylogicalname": "cp_category",
        "cp_showinmenu": False,
    },
    {"cp_entityconfigid": "cfg-5", "cp_name": "Broken"},
]


class TestConfigOperations(unittest.TestCase):
    def setUp(self):
        self.client = PortalClient("https://example.crm.dynamics.com", MagicMock(spec=TokenCredential), PortalConfig())
        self.client._odata = MagicMock()
        self.client._odata._list_entity_configs.return_value = ROWS

    def test_namespace_exists(self):
        self.assertIsInstance(self.client.configs, ConfigOperations)

    def test_list_for_member_hides_admin_and_hidden_entries(self):
        names = [c.name for c in self.client.configs.list(is_admin=False)]
        self.assertEqual(names, ["Ideas", "Requests"])

    def test_list_for_admin_includes_admin_entries(self):
        names = [c.name for c in self.client.configs.list(is_admin=True)]
        self.assertEqual(names, ["Ideas", "Requests", "Settings"])

    def test_rows_without_logical_name_are_skipped(self):
        with self.assertRaises(NotFoundError):
            self.client.configs.get("broken")

    def test_configs_are_cached(self):
        self.client.configs.list()
        self.client.configs.get("ideas")
        self.client._odata._list_entity_configs.assert_called_once()

    def test_invalidate_reloads(self):
        self.client.configs.list()
        self.client.configs.invalidate()
        self.client.configs.list()
        self.assertEqual(self.client._odata._list_entity_configs.call_count, 2)

    def test_get_by_logical_name(self):
        self.assertEqual(self.client.configs.get("CP_IDEA").id, "cfg-1")

    def test_get_by_name(self):
        self.assertEqual(self.client.configs.get("Requests").id, "cfg-2")

    def test_get_tolerates_singular_and_plural(self):
        self.assertEqual(self.client.configs.get("idea").id, "cfg-1")
        self.assertEqual(self.client.configs.get("category").id, "cfg-4")
        self.assertEqual(self.client.configs.get("setting").id, "cfg-3")

    def test_get_unknown(self):
        for name in ("unicorns", "", None):
            with self.subTest(name=name):
                with self.assertRaises(NotFoundError) as ctx:
                    self.client.configs.get(name)
                self.assertEqual(ctx.exception.status_code, 404)
