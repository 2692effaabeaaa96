# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

# Error categories (PortalError.code)
AUTHENTICATION_ERROR = "authentication_error"
AUTHORIZATION_ERROR = "authorization_error"
NOT_FOUND_ERROR = "not_found"
VALIDATION_ERROR = "validation_error"
UPSTREAM_ERROR = "upstream_error"
TIMEOUT_ERROR = "timeout_error"
CONFIGURATION_ERROR = "configuration_error"
INTERNAL_ERROR = "internal_error"

# HTTP subcode constants
HTTP_400 = "http_400"
HTTP_401 = "http_401"
HTTP_403 = "http_403"
HTTP_404 = "http_404"
HTTP_409 = "http_409"
HTTP_412 = "http_412"
HTTP_429 = "http_429"
HTTP_500 = "http_500"
HTTP_502 = "http_502"
HTTP_503 = "http_503"
HTTP_504 = "http_504"

# Authentication subcodes
AUTH_HEADER_MISSING = "auth_header_missing"
AUTH_TOKEN_MALFORMED = "auth_token_malformed"
AUTH_TOKEN_EXPIRED = "auth_token_expired"
AUTH_SUBJECT_MISSING = "auth_subject_missing"

# Authorization subcodes
OWNERSHIP_CONTACT_MISMATCH = "ownership_contact_mismatch"
OWNERSHIP_UNVERIFIABLE = "ownership_unverifiable"
OWNERSHIP_NO_PARENT_ACCOUNT = "ownership_no_parent_account"
ADMIN_REQUIRED = "admin_required"

# Validation subcodes
VALIDATION_INVALID_GUID = "validation_invalid_guid"
VALIDATION_FIELD_SECURITY = "validation_field_security"
VALIDATION_BODY = "validation_body"
VALIDATION_MISSING_PARAMETER = "validation_missing_parameter"
VALIDATION_UNRESOLVED_LOOKUP = "validation_unresolved_lookup"
VALIDATION_OWNERSHIP_CHANGE = "validation_ownership_change"
VALIDATION_FORM_REQUIRED = "validation_form_required"

# Not-found subcodes
NOT_FOUND_ENTITY = "not_found_entity"
NOT_FOUND_RECORD = "not_found_record"
NOT_FOUND_SUBGRID = "not_found_subgrid"

# Generic messages returned to callers. Details stay in server logs.
CLIENT_MESSAGES = {
    AUTHENTICATION_ERROR: "Authentication failed. Please sign in again.",
    AUTHORIZATION_ERROR: "You are not authorized to perform this action.",
    NOT_FOUND_ERROR: "The requested resource was not found.",
    VALIDATION_ERROR: "Invalid input. Please check your data and try again.",
    UPSTREAM_ERROR: "Unable to process your request. Please try again later.",
    TIMEOUT_ERROR: "Request timed out. Please try again.",
    CONFIGURATION_ERROR: "Server configuration error. Please contact support.",
    INTERNAL_ERROR: "An unexpected error occurred. Please try again later.",
}
