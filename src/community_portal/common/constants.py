# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Constants shared by the portal engine.

These tables describe the Dataverse conventions the engine relies on: OData
annotations, the system-managed columns that are never client-writable, and the
well-known lookup mappings used when resolving navigation properties.
"""

# OData annotations
ODATA_BIND_SUFFIX = "@odata.bind"
ODATA_ETAG = "@odata.etag"
ODATA_CONTEXT = "@odata.context"
ODATA_TYPE = "@odata.type"
ODATA_COUNT = "@odata.count"
ODATA_NEXT_LINK = "@odata.nextLink"
FORMATTED_VALUE_ANNOTATIONS = 'odata.include-annotations="OData.Community.Display.V1.FormattedValue"'

# Active records only; applied to every query the engine issues.
ACTIVE_STATE_FILTER = "statecode eq 0"

# Configuration store
ENTITY_CONFIG_SET = "cp_entityconfigs"
ENTITY_CONFIG_COLUMNS = (
    "cp_entityconfigid",
    "cp_name",
    "cp_entitylogicalname",
    "cp_formguid",
    "cp_viewmainguid",
    "cp_viewsubgridguid",
    "cp_contactrelationfield",
    "cp_accountrelationfield",
    "cp_showinmenu",
    "cp_menuicon",
    "cp_menuorder",
    "cp_requiresadmin",
    "cp_enablesubgridedit",
    "cp_description",
)

# Caller contact record
CONTACT_SET = "contacts"
CONTACT_ADMIN_FIELD = "cp_portaladmin"
CONTACT_PARENT_ACCOUNT_FIELD = "_parentcustomerid_value"
CONTACT_COLUMNS = (
    "contactid",
    "emailaddress1",
    CONTACT_ADMIN_FIELD,
    CONTACT_PARENT_ACCOUNT_FIELD,
    "statecode",
)

# Self-service profile
PROFILE_COLUMNS = (
    "contactid",
    "firstname",
    "lastname",
    "emailaddress1",
    "telephone1",
    "createdon",
    "modifiedon",
    "statecode",
)
PROFILE_WRITABLE_FIELDS = frozenset({"firstname", "lastname", "telephone1", "emailaddress1"})

# Organization contact directory
ORGANIZATION_CONTACT_COLUMNS = (
    "contactid",
    "fullname",
    "firstname",
    "lastname",
    "emailaddress1",
    "mobilephone",
    "createdon",
    "modifiedon",
    "_createdby_value",
    CONTACT_ADMIN_FIELD,
    CONTACT_PARENT_ACCOUNT_FIELD,
)
ORGANIZATION_CONTACT_ORDER = "lastname asc,firstname asc"

# Columns maintained by the platform. Rejected on every write, whether or not
# a form exposes them.
SYSTEM_MANAGED_FIELDS = frozenset(
    {
        "createdon",
        "createdby",
        "createdonbehalfby",
        "modifiedon",
        "modifiedby",
        "modifiedonbehalfby",
        "overriddencreatedon",
        "ownerid",
        "owninguser",
        "owningteam",
        "owningbusinessunit",
        "statecode",
        "statuscode",
        "versionnumber",
        "importsequencenumber",
        "timezoneruleversionnumber",
        "utcconversiontimezonecode",
        "fullname",
        "yomifullname",
    }
)

# Keys a client may echo back from a previous read. Never validated, never
# forwarded upstream.
METADATA_PASSTHROUGH_KEYS = frozenset(
    {
        ODATA_ETAG,
        ODATA_CONTEXT,
        ODATA_TYPE,
        "id",
        "entityid",
    }
)

# Column-name fragments that mark a text column as rich text.
RICH_TEXT_NAME_PATTERNS = (
    "description",
    "notes",
    "content",
    "body",
    "details",
    "comments",
    "summary",
)

# Lookup column -> navigation property. Source of truth over any inferred name.
WELL_KNOWN_NAVIGATION_PROPERTIES = {
    "createdby": "createdby",
    "modifiedby": "modifiedby",
    "ownerid": "ownerid",
    "parentcustomerid": "parentcustomerid_account",
    "primarycontactid": "primarycontactid",
}

# Lookup column -> logical name of the referenced table.
WELL_KNOWN_LOOKUP_TARGETS = {
    "createdby": "systemuser",
    "modifiedby": "systemuser",
    "ownerid": "systemuser",
    "parentcustomerid": "account",
    "primarycontactid": "contact",
}

# Lookup column -> entity set of the referenced table.
WELL_KNOWN_LOOKUP_ENTITY_SETS = {
    "createdby": "systemusers",
    "modifiedby": "systemusers",
    "ownerid": "systemusers",
    "parentcustomerid": "accounts",
    "primarycontactid": "contacts",
}

# Logical name -> entity set where appending "s" is wrong.
IRREGULAR_ENTITY_SETS = {
    "opportunity": "opportunities",
    "territory": "territories",
    "activityparty": "activityparties",
    "businessunit": "businessunits",
    "queueitem": "queueitems",
}

# Standard tables a custom lookup column may point at (cp_contact -> contact).
STANDARD_ENTITIES = frozenset(
    {
        "account",
        "contact",
        "systemuser",
        "team",
        "lead",
        "opportunity",
        "incident",
        "businessunit",
    }
)

# Primary name column of well-known tables, used for lookup $expand.
PRIMARY_NAME_ATTRIBUTES = {
    "contact": "fullname",
    "systemuser": "fullname",
    "account": "name",
    "team": "name",
    "lead": "fullname",
    "incident": "title",
}

# Form control class ids (systemform formxml)
CLASSID_CONTROL_TYPES = {
    "{4273EDBD-AC1D-40D3-9FB2-095C621B552D}": "text",
    "{E0DECE4B-6FC8-4A8F-A065-082708572369}": "multitext",
    "{5B773807-9FB2-42DB-97C3-7A91EFF8ADFF}": "datetime",
    "{C6D124CA-7EDA-4A60-AEA9-7FB8D318B68F}": "number",
    "{270BD3DB-D9AF-4782-9025-509E298DEC0A}": "lookup",
    "{3EF39988-22BB-4F0B-BBBE-64B5A3748AEE}": "picklist",
    "{533B9E00-756B-4312-95A0-DC888637AC78}": "money",
    "{C3EFE0C3-0EC6-42BE-8349-CBD9079DFD8E}": "decimal",
    "{B0C6723A-8503-4FD7-BB28-C8A06AC933C2}": "boolean",
    "{67FAC785-CD58-4F9F-ABB3-4B7DDC6ED5ED}": "boolean",
    "{ADA2203E-B4CD-49BE-9DDF-234642B43B52}": "email",
    "{71716B6C-711E-476C-8AB8-5D11542BFB47}": "url",
    "{E7A81278-8635-4D9E-8D4D-59480B391C5B}": "subgrid",
}

# Hard ceiling for list requests, independent of what the caller asks for.
MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 50
