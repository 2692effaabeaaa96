# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Operation namespace classes for the portal engine.

This module contains the operation namespace classes that organize
related operations under namespaces of :class:`~community_portal.client.PortalClient`:
- ConfigOperations: entity configuration lookup and menu listing
- ContactOperations: caller contact verification
- RecordOperations: scoped CRUD on configured entities
"""

__all__ = []
