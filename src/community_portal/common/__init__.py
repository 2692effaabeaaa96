# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Shared constants for the portal engine."""
