# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

import unittest
from unittest.mock import MagicMock

from azure.core.credentials import TokenCredential

from community_portal.client import PortalClient
from community_portal.core import _error_codes as codes
from community_portal.core.config import PortalConfig
from community_portal.core.errors import AuthorizationError, ConfigurationError, NotFoundError, ValidationError
from community_portal.core.identity import UserIdentity
from community_portal.data._odata import _Page
from fixtures.portal_data import ACCOUNT_ID, CONTACT_ID, IDEA_FORM_XML, OTHER_CONTACT_ID, caller_contact, form_record


def contact_row(**overrides):
    row = {
        "contactid": CONTACT_ID,
        "emailaddress1": "Jane@Contoso.com",
        "cp_portaladmin": False,
        "_parentcustomerid_value": ACCOUNT_ID,
        "statecode": 0,
    }
    row.update(overrides)
    return row


class ContactOperationsTestCase(unittest.TestCase):
    config = PortalConfig()

    def setUp(self):
        self.client = PortalClient("https://example.crm.dynamics.com", MagicMock(spec=TokenCredential), self.config)
        self.client._odata = MagicMock()
        self.client._odata._get_contact.return_value = contact_row()
        self.identity = UserIdentity(subject="user-1", email="jane@contoso.com")


class TestVerifyByEmail(ContactOperationsTestCase):
    def test_matching_email_ignores_case(self):
        contact = self.client.contacts.verify(CONTACT_ID.upper(), self.identity)
        self.assertEqual(contact.contact_id, CONTACT_ID)
        self.assertEqual(contact.parent_account_id, ACCOUNT_ID)
        self.assertFalse(contact.is_admin)
        self.client._odata._get_contact.assert_called_once_with(
            CONTACT_ID, ["contactid", "emailaddress1", "cp_portaladmin", "_parentcustomerid_value", "statecode"]
        )

    def test_other_persons_contact_is_forbidden(self):
        self.client._odata._get_contact.return_value = contact_row(contactid=OTHER_CONTACT_ID, emailaddress1="bob@contoso.com")
        with self.assertRaises(AuthorizationError) as ctx:
            self.client.contacts.verify(OTHER_CONTACT_ID, self.identity)
        self.assertEqual(ctx.exception.status_code, 403)
        self.assertEqual(ctx.exception.subcode, codes.OWNERSHIP_CONTACT_MISMATCH)

    def test_missing_contact_reads_as_forbidden(self):
        self.client._odata._get_contact.side_effect = NotFoundError("Contact not found")
        with self.assertRaises(AuthorizationError) as ctx:
            self.client.contacts.verify(CONTACT_ID, self.identity)
        self.assertEqual(ctx.exception.subcode, codes.OWNERSHIP_CONTACT_MISMATCH)

    def test_inactive_contact_is_forbidden(self):
        self.client._odata._get_contact.return_value = contact_row(statecode=1)
        with self.assertRaises(AuthorizationError):
            self.client.contacts.verify(CONTACT_ID, self.identity)

    def test_token_without_email_is_unverifiable(self):
        with self.assertRaises(AuthorizationError) as ctx:
            self.client.contacts.verify(CONTACT_ID, UserIdentity(subject="user-1"))
        self.assertEqual(ctx.exception.subcode, codes.OWNERSHIP_UNVERIFIABLE)

    def test_invalid_guid_is_rejected_before_lookup(self):
        with self.assertRaises(ValidationError) as ctx:
            self.client.contacts.verify("abc' or 1 eq 1", self.identity)
        self.assertEqual(ctx.exception.status_code, 400)
        self.client._odata._get_contact.assert_not_called()

    def test_admin_flag(self):
        self.client._odata._get_contact.return_value = contact_row(cp_portaladmin=True)
        self.assertTrue(self.client.contacts.verify(CONTACT_ID, self.identity).is_admin)

    def test_organization_contact_ids(self):
        self.client._odata._list_account_contact_ids.return_value = [CONTACT_ID, OTHER_CONTACT_ID]
        self.assertEqual(self.client.contacts.organization_contact_ids(ACCOUNT_ID), [CONTACT_ID, OTHER_CONTACT_ID])
        self.client._odata._list_account_contact_ids.assert_called_once_with(ACCOUNT_ID)


class TestVerifyBySubject(ContactOperationsTestCase):
    config = PortalConfig(contact_subject_field="cp_b2cobjectid")

    def test_subject_match(self):
        self.client._odata._get_contact.return_value = contact_row(cp_b2cobjectid="user-1", emailaddress1=None)
        contact = self.client.contacts.verify(CONTACT_ID, UserIdentity(subject="user-1"))
        self.assertEqual(contact.subject, "user-1")
        self.assertIn("cp_b2cobjectid", self.client._odata._get_contact.call_args.args[1])

    def test_subject_mismatch_ignores_matching_email(self):
        self.client._odata._get_contact.return_value = contact_row(cp_b2cobjectid="someone-else")
        with self.assertRaises(AuthorizationError):
            self.client.contacts.verify(CONTACT_ID, self.identity)

    def test_contact_without_subject(self):
        with self.assertRaises(AuthorizationError):
            self.client.contacts.verify(CONTACT_ID, self.identity)


def profile_row(**overrides):
    row = {
        "contactid": CONTACT_ID,
        "firstname": "Jane",
        "lastname": "Doe",
        "emailaddress1": "jane@contoso.com",
        "telephone1": None,
        "statecode": 0,
    }
    row.update(overrides)
    return row


class TestProfile(ContactOperationsTestCase):
    def test_found_by_token_email(self):
        self.client._odata._get_first.return_value = profile_row()
        result = self.client.contacts.profile(self.identity).to_dict()
        self.assertEqual(result, {"contact": profile_row(), "found": True})
        args, kwargs = self.client._odata._get_first.call_args
        self.assertEqual(args, ("contacts",))
        self.assertEqual(kwargs["filter"], "emailaddress1 eq 'jane@contoso.com'")
        self.assertIn("telephone1", kwargs["select"])

    def test_email_quotes_are_escaped(self):
        self.client._odata._get_first.return_value = None
        self.client.contacts.profile(UserIdentity(subject="user-1", email="o'neil@contoso.com"))
        self.assertEqual(self.client._odata._get_first.call_args.kwargs["filter"], "emailaddress1 eq 'o''neil@contoso.com'")

    def test_not_found(self):
        self.client._odata._get_first.return_value = None
        self.assertEqual(self.client.contacts.profile(self.identity).to_dict(), {"contact": None, "found": False})

    def test_inactive_contact_reads_as_absent(self):
        self.client._odata._get_first.return_value = profile_row(statecode=1)
        self.assertFalse(self.client.contacts.profile(self.identity).to_dict()["found"])

    def test_token_without_email_is_unverifiable(self):
        with self.assertRaises(AuthorizationError) as ctx:
            self.client.contacts.profile(UserIdentity(subject="user-1"))
        self.assertEqual(ctx.exception.subcode, codes.OWNERSHIP_UNVERIFIABLE)
        self.client._odata._get_first.assert_not_called()


class TestProfileBySubject(ContactOperationsTestCase):
    config = PortalConfig(contact_subject_field="cp_b2cobjectid")

    def test_lookup_uses_subject(self):
        self.client._odata._get_first.return_value = None
        self.client.contacts.profile(UserIdentity(subject="user-1"))
        kwargs = self.client._odata._get_first.call_args.kwargs
        self.assertEqual(kwargs["filter"], "cp_b2cobjectid eq 'user-1'")
        self.assertIn("cp_b2cobjectid", kwargs["select"])

    def test_create_stores_subject(self):
        self.client._odata._get_first.return_value = None
        self.client._odata._create.return_value = CONTACT_ID
        self.client.contacts.save_profile(self.identity, {"firstname": "Jane"})
        body = self.client._odata._create.call_args.args[1]
        self.assertEqual(body["cp_b2cobjectid"], "user-1")
        self.assertEqual(body["emailaddress1"], "jane@contoso.com")


class TestSaveProfile(ContactOperationsTestCase):
    def setUp(self):
        super().setUp()
        self.client._odata._get_contact.return_value = profile_row(firstname="Janet")

    def test_updates_existing_contact(self):
        self.client._odata._get_first.return_value = profile_row(contactid=CONTACT_ID.upper())
        result = self.client.contacts.save_profile(self.identity, {"FirstName": " Janet ", "telephone1": "555"})
        self.client._odata._update.assert_called_once_with("contacts", CONTACT_ID, {"firstname": "Janet", "telephone1": "555"})
        self.client._odata._create.assert_not_called()
        self.assertEqual(result.to_dict(), {"contact": profile_row(firstname="Janet"), "created": False})

    def test_creates_missing_contact_with_token_email(self):
        self.client._odata._get_first.return_value = None
        self.client._odata._create.return_value = CONTACT_ID
        result = self.client.contacts.save_profile(
            self.identity, {"firstname": "Jane", "lastname": "Doe", "emailaddress1": "JANE@contoso.com"}
        )
        self.client._odata._create.assert_called_once_with(
            "contacts", {"firstname": "Jane", "lastname": "Doe", "emailaddress1": "jane@contoso.com"}
        )
        self.assertTrue(result.to_dict()["created"])
        self.client._odata._get_contact.assert_called_once()
        self.assertEqual(self.client._odata._get_contact.call_args.args[0], CONTACT_ID)

    def test_foreign_email_is_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            self.client.contacts.save_profile(self.identity, {"emailaddress1": "bob@contoso.com"})
        self.assertEqual(ctx.exception.subcode, codes.VALIDATION_FIELD_SECURITY)
        self.assertEqual(ctx.exception.violating_fields, ["emailaddress1"])
        self.client._odata._create.assert_not_called()
        self.client._odata._update.assert_not_called()

    def test_columns_outside_profile_are_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            self.client.contacts.save_profile(
                self.identity, {"firstname": "Jane", "cp_portaladmin": True, "parentcustomerid_account@odata.bind": "/accounts(x)"}
            )
        self.assertEqual(ctx.exception.subcode, codes.VALIDATION_FIELD_SECURITY)
        self.assertEqual(ctx.exception.violating_fields, ["cp_portaladmin", "parentcustomerid_account@odata.bind"])
        self.client._odata._get_first.assert_not_called()

    def test_system_managed_column_is_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            self.client.contacts.save_profile(self.identity, {"statecode": 1})
        self.assertEqual(ctx.exception.violating_fields, ["statecode"])

    def test_non_string_value_is_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            self.client.contacts.save_profile(self.identity, {"telephone1": 5550100})
        self.assertEqual(ctx.exception.subcode, codes.VALIDATION_BODY)

    def test_body_must_be_object(self):
        with self.assertRaises(ValidationError) as ctx:
            self.client.contacts.save_profile(self.identity, ["firstname"])
        self.assertEqual(ctx.exception.subcode, codes.VALIDATION_BODY)

    def test_empty_update_is_rejected(self):
        self.client._odata._get_first.return_value = profile_row()
        with self.assertRaises(ValidationError) as ctx:
            self.client.contacts.save_profile(self.identity, {"emailaddress1": "jane@contoso.com", "@odata.etag": "W/1"})
        self.assertEqual(ctx.exception.subcode, codes.VALIDATION_BODY)
        self.client._odata._update.assert_not_called()

    def test_inactive_contact_is_not_recreated(self):
        self.client._odata._get_first.return_value = profile_row(statecode=1)
        with self.assertRaises(AuthorizationError):
            self.client.contacts.save_profile(self.identity, {"firstname": "Jane"})
        self.client._odata._create.assert_not_called()
        self.client._odata._update.assert_not_called()

    def test_token_without_email_cannot_save(self):
        with self.assertRaises(AuthorizationError) as ctx:
            self.client.contacts.save_profile(UserIdentity(subject="user-1"), {"firstname": "Jane"})
        self.assertEqual(ctx.exception.subcode, codes.OWNERSHIP_UNVERIFIABLE)


CONTACT_LAYOUT_XML = """<grid name="resultset" object="2" jump="fullname" select="1" icon="1" preview="1">
  <row name="result" id="contactid">
    <cell name="fullname" width="200" />
    <cell name="emailaddress1" width="200" />
    <cell name="parentcustomerid" width="150" />
  </row>
</grid>"""

CONTACT_VIEW_GUID = "e0000000-0000-0000-0000-0000000000c1"
CONTACT_FORM_GUID = "f0000000-0000-0000-0000-0000000000c1"
ORG_SCOPE = f"statecode eq 0 and _parentcustomerid_value eq '{ACCOUNT_ID}'"


class TestOrganization(ContactOperationsTestCase):
    config = PortalConfig(contact_view_guid=CONTACT_VIEW_GUID, contact_form_guid=CONTACT_FORM_GUID)

    def setUp(self):
        super().setUp()
        self.admin = caller_contact(is_admin=True)
        self.members = [{"contactid": CONTACT_ID}, {"contactid": OTHER_CONTACT_ID}]
        self.client._odata._get_multiple.return_value = _Page(records=self.members, total_count=2, has_more=False)

    def test_lists_account_contacts(self):
        result = self.client.contacts.organization(self.admin, page=1, page_size=500).to_dict()
        self.assertEqual(result["contacts"], self.members)
        self.assertEqual(result["accountId"], ACCOUNT_ID)
        self.assertEqual(result["mode"], "list")
        self.assertEqual(result["pageSize"], 100)
        self.assertTrue(result["isAdmin"])
        args, kwargs = self.client._odata._get_multiple.call_args
        self.assertEqual(args, ("contacts",))
        self.assertEqual(kwargs["filter"], ORG_SCOPE)
        self.assertEqual(kwargs["orderby"], "lastname asc,firstname asc")
        self.assertIn("mobilephone", kwargs["select"])

    def test_member_is_refused(self):
        with self.assertRaises(AuthorizationError) as ctx:
            self.client.contacts.organization(caller_contact())
        self.assertEqual(ctx.exception.subcode, codes.ADMIN_REQUIRED)
        self.client._odata._get_multiple.assert_not_called()

    def test_admin_without_account_is_refused(self):
        with self.assertRaises(AuthorizationError) as ctx:
            self.client.contacts.organization(caller_contact(is_admin=True, parent_account_id=None))
        self.assertEqual(ctx.exception.subcode, codes.OWNERSHIP_NO_PARENT_ACCOUNT)
        self.client._odata._get_multiple.assert_not_called()

    def test_dynamic_mode_selects_view_columns(self):
        self.client._odata._get_saved_query.return_value = {
            "savedqueryid": CONTACT_VIEW_GUID,
            "name": "Organization Contacts",
            "layoutxml": CONTACT_LAYOUT_XML,
        }
        self.client._odata._get_many_to_one_relationships.return_value = []
        result = self.client.contacts.organization(self.admin, mode="dynamic").to_dict()
        self.client._odata._get_saved_query.assert_called_once_with(CONTACT_VIEW_GUID)
        self.assertEqual(result["mode"], "dynamic")
        self.assertEqual([c["name"] for c in result["viewMetadata"]["columns"]], ["fullname", "emailaddress1", "parentcustomerid"])
        kwargs = self.client._odata._get_multiple.call_args.kwargs
        self.assertEqual(kwargs["select"], ["contactid", "fullname", "emailaddress1", "_parentcustomerid_value"])
        self.assertEqual(kwargs["expand"], ["parentcustomerid_account($select=name)"])
        self.assertEqual(kwargs["filter"], ORG_SCOPE)

    def test_dynamic_mode_needs_view(self):
        self.client._config = PortalConfig()
        with self.assertRaises(ConfigurationError):
            self.client.contacts.organization(self.admin, mode="dynamic")

    def test_form_mode(self):
        self.client._odata._get_system_form.return_value = form_record(IDEA_FORM_XML)
        result = self.client.contacts.organization(self.admin, mode="form").to_dict()
        self.client._odata._get_system_form.assert_called_once_with(CONTACT_FORM_GUID)
        self.assertEqual(result["mode"], "form")
        self.assertTrue(result["formMetadata"]["structure"]["tabs"])
        self.assertNotIn("contacts", result)

    def test_form_mode_needs_form(self):
        self.client._config = PortalConfig()
        with self.assertRaises(ConfigurationError):
            self.client.contacts.organization(self.admin, mode="form")

    def test_single_contact_is_scoped_to_account(self):
        self.client._odata._get_first.return_value = {"contactid": OTHER_CONTACT_ID}
        result = self.client.contacts.organization(self.admin, contact_id=OTHER_CONTACT_ID.upper()).to_dict()
        self.assertEqual(result["mode"], "single")
        self.assertEqual(result["contact"], {"contactid": OTHER_CONTACT_ID})
        self.assertEqual(
            self.client._odata._get_first.call_args.kwargs["filter"],
            f"contactid eq {OTHER_CONTACT_ID} and {ORG_SCOPE}",
        )

    def test_contact_of_another_account_is_not_found(self):
        self.client._odata._get_first.return_value = None
        with self.assertRaises(NotFoundError) as ctx:
            self.client.contacts.organization(self.admin, contact_id=OTHER_CONTACT_ID)
        self.assertEqual(ctx.exception.subcode, codes.NOT_FOUND_RECORD)

    def test_single_contact_id_must_be_guid(self):
        with self.assertRaises(ValidationError):
            self.client.contacts.organization(self.admin, contact_id="x' or 1 eq 1")
        self.client._odata._get_first.assert_not_called()
