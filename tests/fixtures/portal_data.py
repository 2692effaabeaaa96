# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Sample identifiers, documents and builders shared by portal engine tests.

Form and view XML mirror what ``systemforms`` and ``savedqueries`` return for
a contact-owned ``cp_idea`` table.
"""

import time

import jwt

from community_portal.models.contact import ContactRecord
from community_portal.models.entity_config import EntityConfiguration

CONTACT_ID = "11111111-1111-1111-1111-111111111111"
OTHER_CONTACT_ID = "22222222-2222-2222-2222-222222222222"
ACCOUNT_ID = "aaaaaaaa-aaaa-aaaa-aaaa-aaaaaaaaaaaa"
RECORD_ID = "33333333-3333-3333-3333-333333333333"

IDEA_FORM_XML = """<form>
  <tabs>
    <tab name="general" id="{T1}" showlabel="true">
      <labels><label description="Allgemein" languagecode="1031" /><label description="General" languagecode="1033" /></labels>
      <columns><column width="100%"><sections>
        <section name="details" showlabel="false" columns="2">
          <labels><label description="Details" languagecode="1033" /></labels>
          <rows>
            <row>
              <cell id="{C1}"><labels><label description="Title" languagecode="1033" /></labels>
                <control id="cp_name" classid="{4273EDBD-AC1D-40D3-9FB2-095C621B552D}" datafieldname="cp_name" />
              </cell>
              <cell id="{C2}">
                <control id="cp_description" classid="{E0DECE4B-6FC8-4A8F-A065-082708572369}" datafieldname="cp_description" />
              </cell>
            </row>
            <row>
              <cell id="{C3}"><labels><label description="Submitted by" languagecode="1033" /></labels>
                <control id="cp_contact" classid="{270BD3DB-D9AF-4782-9025-509E298DEC0A}" datafieldname="cp_contact" disabled="true" />
              </cell>
              <cell id="{C4}">
                <control id="cp_category" classid="{270BD3DB-D9AF-4782-9025-509E298DEC0A}" datafieldname="cp_category" />
              </cell>
            </row>
            <row>
              <cell id="{C5}"><control id="spacer" /></cell>
            </row>
          </rows>
        </section>
      </sections></column></columns>
    </tab>
    <tab name="related">
      <columns><column><sections>
        <section name="comments_section">
          <rows><row><cell id="{C6}">
            <labels><label description="Comments" languagecode="1033" /></labels>
            <control id="Comments" classid="{E7A81278-8635-4D9E-8D4D-59480B391C5B}" uniqueid="{SG1}">
              <parameters>
                <TargetEntityType>cp_comment</TargetEntityType>
                <RelationshipName>cp_idea_cp_comment</RelationshipName>
                <ViewId>{BBBBBBBB-0000-0000-0000-000000000001}</ViewId>
              </parameters>
            </control>
          </cell></row></rows>
        </section>
      </sections></column></columns>
    </tab>
  </tabs>
</form>"""

IDEA_LAYOUT_XML = """<grid name="resultset" object="10001" jump="cp_name" select="1" icon="1" preview="1">
  <row name="result" id="cp_ideaid">
    <cell name="cp_name" width="300" />
    <cell name="cp_category" width="150" />
    <cell name="createdon" />
  </row>
</grid>"""

IDEA_FETCH_XML = """<fetch version="1.0" mapping="logical">
  <entity name="cp_idea">
    <attribute name="cp_name" />
    <order attribute="createdon" descending="true" />
  </entity>
</fetch>"""

IDEA_RELATIONSHIPS = [
    {
        "SchemaName": "cp_contact_cp_idea",
        "ReferencingAttribute": "cp_contact",
        "ReferencingEntityNavigationPropertyName": "cp_Contact",
        "ReferencedEntity": "contact",
    },
    {
        "SchemaName": "cp_category_cp_idea",
        "ReferencingAttribute": "cp_category",
        "ReferencingEntityNavigationPropertyName": "cp_Category",
        "ReferencedEntity": "cp_category",
    },
]


def make_token(claims=None, expires_in=3600):
    """Unsigned-verification test token; the engine never checks signatures."""
    payload = {"sub": "user-1", "email": "jane@contoso.com", "exp": int(time.time()) + expires_in}
    payload.update(claims or {})
    # a None value drops the claim
    payload = {k: v for k, v in payload.items() if v is not None}
    return jwt.encode(payload, "test-secret-key-for-unit-tests-only-32b", algorithm="HS256")


def idea_config(**overrides):
    values = dict(
        id="cfg-1",
        name="Ideas",
        entity_logical_name="cp_idea",
        form_guid="f0000000-0000-0000-0000-000000000001",
        view_main_guid="e0000000-0000-0000-0000-000000000001",
        contact_relation_field="cp_contact",
        show_in_menu=True,
        menu_order=1,
    )
    values.update(overrides)
    return EntityConfiguration(**values)


def caller_contact(**overrides):
    values = dict(
        contact_id=CONTACT_ID,
        email="jane@contoso.com",
        is_admin=False,
        parent_account_id=ACCOUNT_ID,
    )
    values.update(overrides)
    return ContactRecord(**values)



def form_record(formxml=IDEA_FORM_XML):
    return {"formid": "f0000000-0000-0000-0000-000000000001", "name": "Idea Main", "formxml": formxml}


def view_record(layoutxml=IDEA_LAYOUT_XML):
    return {
        "savedqueryid": "e0000000-0000-0000-0000-000000000001",
        "name": "Active Ideas",
        "layoutxml": layoutxml,
        "fetchxml": IDEA_FETCH_XML,
    }
