# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Data access layer for the portal engine.

Holds the low-level Web API client, the form/view parsers, lookup resolution,
record-scoping filters and write-payload validation.
"""
