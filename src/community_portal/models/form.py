# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Typed trees for parsed form and view definitions.

A form is a tree of :class:`Tab` -> :class:`Section` -> :class:`Row` ->
:class:`Cell` -> :class:`FormControl`. Subgrids are kept apart from that tree in
:attr:`FormMetadata.subgrids` because they carry no writable column.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Set


@dataclass
class FormControl:
    """
    A field placed on a form.

    :param datafieldname: Logical name of the bound column, lowercased.
    :type datafieldname: str
    :param display_name: Label shown for the field.
    :type display_name: str
    :param control_type: Semantic type, e.g. ``"text"``, ``"lookup"``, ``"richtext"``.
    :type control_type: str
    """

    datafieldname: str
    display_name: str
    control_type: str = "text"
    id: Optional[str] = None
    classid: Optional[str] = None
    class_type: Optional[str] = None
    disabled: bool = False
    is_rich_text: bool = False

    @property
    def is_lookup(self) -> bool:
        return self.control_type == "lookup"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "control",
            "id": self.id,
            "datafieldname": self.datafieldname,
            "displayName": self.display_name,
            "label": self.display_name,
            "controlType": self.control_type,
            "classid": self.classid,
            "classType": self.class_type,
            "disabled": self.disabled,
            "isRichText": self.is_rich_text,
            "isLookup": self.is_lookup,
        }


@dataclass
class SubgridDescriptor:
    """
    An embedded list of related records.

    :param target_entity: Logical name of the related table.
    :type target_entity: str
    :param relationship_name: Schema name of the one-to-many relationship.
    :type relationship_name: str
    :param view_id: ``savedqueries`` id shaping the list, if the form names one.
    :type view_id: str or None
    :param lookup_field: Lookup column on the target table that points at the parent.
        Filled in from relationship metadata after parsing.
    :type lookup_field: str or None
    """

    name: str
    display_name: str
    target_entity: str
    relationship_name: str
    id: Optional[str] = None
    view_id: Optional[str] = None
    tab: Optional[str] = None
    section: Optional[str] = None
    lookup_field: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "subgrid",
            "id": self.id,
            "name": self.name,
            "displayName": self.display_name,
            "targetEntity": self.target_entity,
            "relationshipName": self.relationship_name,
            "viewId": self.view_id,
            "tab": self.tab,
            "section": self.section,
            "lookupField": self.lookup_field,
        }


@dataclass
class Cell:
    controls: List[FormControl] = field(default_factory=list)
    colspan: int = 1
    rowspan: int = 1
    visible: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "colspan": self.colspan,
            "rowspan": self.rowspan,
            "visible": self.visible,
            "controls": [c.to_dict() for c in self.controls],
        }


@dataclass
class Row:
    cells: List[Cell] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"cells": [c.to_dict() for c in self.cells]}


@dataclass
class Section:
    name: str
    display_name: str
    id: Optional[str] = None
    visible: bool = True
    show_label: bool = True
    hidden: bool = False
    hide_label: bool = False
    columns: int = 1
    rows: List[Row] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "id": self.id,
            "displayName": self.display_name,
            "visible": self.visible,
            "showLabel": self.show_label,
            "hidden": self.hidden,
            "hideLabel": self.hide_label,
            "columns": self.columns,
            "rows": [r.to_dict() for r in self.rows],
        }


@dataclass
class Tab:
    name: str
    display_name: str
    id: Optional[str] = None
    visible: bool = True
    show_label: bool = True
    hidden: bool = False
    hide_label: bool = False
    sections: List[Section] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "id": self.id,
            "displayName": self.display_name,
            "visible": self.visible,
            "showLabel": self.show_label,
            "hidden": self.hidden,
            "hideLabel": self.hide_label,
            "sections": [s.to_dict() for s in self.sections],
        }


@dataclass
class FormMetadata:
    """
    A parsed ``systemforms`` definition.

    :param name: Form name.
    :type name: str
    :param tabs: Tabs in document order.
    :type tabs: list[Tab]
    :param subgrids: Subgrid descriptors in document order.
    :type subgrids: list[SubgridDescriptor]
    """

    name: Optional[str] = None
    form_id: Optional[str] = None
    description: Optional[str] = None
    tabs: List[Tab] = field(default_factory=list)
    subgrids: List[SubgridDescriptor] = field(default_factory=list)

    def iter_controls(self) -> Iterator[FormControl]:
        for tab in self.tabs:
            for section in tab.sections:
                for row in section.rows:
                    for cell in row.cells:
                        yield from cell.controls

    def field_names(self) -> Set[str]:
        return {c.datafieldname for c in self.iter_controls()}

    def find_subgrid(self, relationship: str) -> Optional[SubgridDescriptor]:
        """Subgrid by relationship name (case-insensitive), falling back to control name."""
        key = (relationship or "").lower()
        for sg in self.subgrids:
            if sg.relationship_name.lower() == key:
                return sg
        for sg in self.subgrids:
            if sg.name.lower() == key:
                return sg
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "formId": self.form_id,
            "name": self.name,
            "displayName": self.name,
            "description": self.description,
            "structure": {"tabs": [t.to_dict() for t in self.tabs]},
            "subgrids": [s.to_dict() for s in self.subgrids],
        }


@dataclass
class ViewColumn:
    name: str
    display_name: str
    type: str = "text"
    width: str = "120px"

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "displayName": self.display_name, "type": self.type, "width": self.width}


@dataclass
class ViewMetadata:
    """A parsed ``savedqueries`` definition: ordered list columns."""

    name: Optional[str] = None
    view_id: Optional[str] = None
    description: Optional[str] = None
    entity_name: Optional[str] = None
    columns: List[ViewColumn] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "viewId": self.view_id,
            "name": self.name,
            "description": self.description,
            "entityName": self.entity_name,
            "columns": [c.to_dict() for c in self.columns],
        }
