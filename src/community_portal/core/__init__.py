# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Core infrastructure for the portal engine.

Configuration, structured errors, caching, outbound HTTP and service
authentication, inbound identity, logging and result types.
"""
