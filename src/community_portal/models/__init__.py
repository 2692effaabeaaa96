# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Data models for the portal engine.

Provides the entity configuration record, the caller's contact record and the
typed trees produced by the form and view parsers.
"""

from .contact import ContactRecord
from .entity_config import EntityConfiguration, OwnershipPattern
from .form import (
    Cell,
    FormControl,
    FormMetadata,
    Row,
    Section,
    SubgridDescriptor,
    Tab,
    ViewColumn,
    ViewMetadata,
)

__all__ = [
    "ContactRecord",
    "EntityConfiguration",
    "OwnershipPattern",
    "Cell",
    "FormControl",
    "FormMetadata",
    "Row",
    "Section",
    "SubgridDescriptor",
    "Tab",
    "ViewColumn",
    "ViewMetadata",
]
