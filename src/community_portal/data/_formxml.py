# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Parsers for Dataverse form (``systemforms.formxml``) and view
(``savedqueries.layoutxml`` / ``fetchxml``) documents.

The documents come from the data service and are outside this system's
control, so parsing never raises: malformed input yields an empty tree and a
warning.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, Optional, Tuple
from xml.etree.ElementTree import Element, ParseError

from defusedxml import DefusedXmlException
from defusedxml.ElementTree import fromstring

from ..common.constants import CLASSID_CONTROL_TYPES, RICH_TEXT_NAME_PATTERNS
from ..models.form import (
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

logger = logging.getLogger(__name__)

DEFAULT_COLUMN_WIDTH = "120px"

_DISPLAY_NAMES = {
    "cp_ideaid": "ID",
    "cp_name": "Name",
    "cp_description": "Description",
    "createdon": "Created",
    "modifiedon": "Modified",
    "statuscode": "Status",
    "statecode": "State",
}

_CLASS_TYPE_HINTS = (
    ("richtext", "richtext"),
    ("datetime", "datetime"),
    ("lookup", "lookup"),
    ("optionset", "optionset"),
    ("picklist", "optionset"),
    ("boolean", "boolean"),
)

_CAMEL_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def format_display_name(field_name: str, prefixes: Tuple[str, ...] = ("cp_",)) -> str:
    """Human label for a column: known names first, else prefix-stripped and title-cased."""
    if field_name in _DISPLAY_NAMES:
        return _DISPLAY_NAMES[field_name]
    name = field_name
    if name.startswith("_") and name.endswith("_value"):
        name = name[1:-6]
    for prefix in prefixes:
        if name.lower().startswith(prefix):
            name = name[len(prefix) :]
            break
    name = _CAMEL_RE.sub(" ", name).replace("_", " ").strip()
    if not name:
        return field_name
    return " ".join(w[:1].upper() + w[1:] for w in name.split())


def infer_field_type(field_name: str) -> str:
    name = field_name.lower()
    if "email" in name:
        return "email"
    if "phone" in name or "telephone" in name:
        return "phone"
    if "createdon" in name or "modifiedon" in name:
        return "datetime"
    if name.endswith("_value"):
        return "lookup"
    if name in ("statuscode", "statecode"):
        return "optionset"
    return "text"


def _flag(el: Element, attr: str, default: bool) -> bool:
    value = el.get(attr)
    if value is None:
        return default
    return value.strip().lower() == "true"


def _int_attr(el: Element, attr: str, default: int) -> int:
    try:
        return int(el.get(attr, default))
    except (TypeError, ValueError):
        return default


def _width(cell: Element) -> str:
    raw = (cell.get("width") or "").strip()
    if not raw:
        return DEFAULT_COLUMN_WIDTH
    # layoutxml widths are bare pixel counts
    return f"{raw}px" if raw.isdigit() else raw


def _label(el: Optional[Element], language_code: int) -> Optional[str]:
    """Label from the ``label`` attribute, else ``labels/label`` in the preferred language."""
    if el is None:
        return None
    direct = el.get("label")
    if direct:
        return direct
    fallback = None
    for lbl in el.iterfind("labels/label"):
        description = lbl.get("description")
        if not description:
            continue
        if lbl.get("languagecode") == str(language_code):
            return description
        if fallback is None:
            fallback = description
    return fallback


def _mentions_rich_text(el: Element) -> bool:
    for node in el.iter():
        values: Iterable[Optional[str]] = (node.tag, node.text, *node.attrib.values())
        if any(v and "richtext" in v.lower() for v in values):
            return True
    return False


def _control_type(field_name: str, classid: Optional[str], class_type: Optional[str]) -> str:
    if classid:
        mapped = CLASSID_CONTROL_TYPES.get(classid.upper())
        if mapped:
            return mapped
    if class_type:
        lowered = class_type.lower()
        for hint, control_type in _CLASS_TYPE_HINTS:
            if hint in lowered:
                return control_type
    inferred = infer_field_type(field_name)
    if inferred == "text" and ("description" in field_name or "notes" in field_name):
        return "multitext"
    return inferred


class FormXmlParser:
    """
    Tree walk over form and view XML.

    :param language_code: Preferred LCID when a node carries several labels.
    :type language_code: int
    :param prefixes: Custom column prefixes stripped when generating display names.
    :type prefixes: tuple[str, ...]
    """

    def __init__(self, language_code: int = 1033, prefixes: Tuple[str, ...] = ("cp_",)) -> None:
        self.language_code = language_code
        self.prefixes = prefixes

    # ------------------------------------------------------------------ forms

    def parse_form(self, record: Dict[str, Any]) -> FormMetadata:
        """Parse a ``systemforms`` row (``name``, ``description``, ``formxml``)."""
        form = FormMetadata(
            name=record.get("name"),
            form_id=record.get("formid") or record.get("systemformid"),
            description=record.get("description"),
        )
        formxml = record.get("formxml")
        if not formxml:
            logger.warning("Form %s has no formxml", form.name)
            return form
        root = self._parse(formxml, f"form {form.name}")
        if root is None:
            return form
        node = root if root.tag == "form" else root.find(".//form")
        if node is None:
            logger.warning("Form %s has no <form> element", form.name)
            return form
        for index, tab_el in enumerate(node.iterfind("tabs/tab")):
            form.tabs.append(self._parse_tab(tab_el, index, form))
        logger.debug("Parsed form %s: %d tabs, %d subgrids", form.name, len(form.tabs), len(form.subgrids))
        return form

    def _parse_tab(self, el: Element, index: int, form: FormMetadata) -> Tab:
        name = el.get("name") or f"Tab{index + 1}"
        tab = Tab(
            name=name,
            display_name=_label(el, self.language_code) or name,
            id=el.get("id"),
            visible=_flag(el, "visible", True),
            show_label=_flag(el, "showlabel", True),
            hidden=_flag(el, "hidden", False),
            hide_label=_flag(el, "hidelabel", False),
        )
        for s_index, section_el in enumerate(el.iterfind("columns/column/sections/section")):
            tab.sections.append(self._parse_section(section_el, s_index, tab, form))
        return tab

    def _parse_section(self, el: Element, index: int, tab: Tab, form: FormMetadata) -> Section:
        name = el.get("name") or f"Section{index + 1}"
        section = Section(
            name=name,
            display_name=_label(el, self.language_code) or name,
            id=el.get("id"),
            visible=_flag(el, "visible", True),
            show_label=_flag(el, "showlabel", True),
            hidden=_flag(el, "hidden", False),
            hide_label=_flag(el, "hidelabel", False),
            columns=_int_attr(el, "columns", 1),
        )
        for row_el in el.iterfind("rows/row"):
            row = Row()
            for cell_el in row_el.iterfind("cell"):
                cell = Cell(
                    colspan=_int_attr(cell_el, "colspan", 1),
                    rowspan=_int_attr(cell_el, "rowspan", 1),
                    visible=_flag(cell_el, "visible", True),
                )
                for control_el in cell_el.iterfind("control"):
                    subgrid = self._parse_subgrid(control_el, cell_el, tab, section)
                    if subgrid is not None:
                        form.subgrids.append(subgrid)
                        continue
                    control = self._parse_control(control_el, cell_el)
                    if control is not None:
                        cell.controls.append(control)
                if cell.controls:
                    row.cells.append(cell)
            if row.cells:
                section.rows.append(row)
        return section

    def _parse_subgrid(self, el: Element, cell: Element, tab: Tab, section: Section) -> Optional[SubgridDescriptor]:
        params = el.find("parameters")
        if params is None:
            return None
        target = (params.findtext("TargetEntityType") or "").strip()
        relationship = (params.findtext("RelationshipName") or "").strip()
        if not target or not relationship:
            return None
        name = el.get("id") or relationship
        view_id = (params.findtext("ViewId") or "").strip().strip("{}") or None
        return SubgridDescriptor(
            name=name,
            display_name=_label(el, self.language_code) or _label(cell, self.language_code) or name,
            target_entity=target.lower(),
            relationship_name=relationship,
            id=el.get("uniqueid") or el.get("id"),
            view_id=view_id.lower() if view_id else None,
            tab=tab.name,
            section=section.name,
        )

    def _parse_control(self, el: Element, cell: Element) -> Optional[FormControl]:
        field_name = (el.get("datafieldname") or "").strip().lower()
        if not field_name:
            return None
        classid = el.get("classid")
        class_type = el.get("classtype")
        control_type = _control_type(field_name, classid, class_type)
        is_rich_text = control_type == "richtext" or _mentions_rich_text(el)
        if not is_rich_text and control_type in ("text", "multitext"):
            is_rich_text = any(p in field_name for p in RICH_TEXT_NAME_PATTERNS)
        return FormControl(
            datafieldname=field_name,
            display_name=_label(el, self.language_code)
            or _label(cell, self.language_code)
            or format_display_name(field_name, self.prefixes),
            control_type="richtext" if is_rich_text else control_type,
            id=el.get("id"),
            classid=classid,
            class_type=class_type,
            disabled=_flag(el, "disabled", False),
            is_rich_text=is_rich_text,
        )

    # ------------------------------------------------------------------ views

    def parse_view(self, record: Dict[str, Any]) -> ViewMetadata:
        """Parse a ``savedqueries`` row (``name``, ``description``, ``layoutxml``, ``fetchxml``)."""
        view = ViewMetadata(
            name=record.get("name"),
            view_id=record.get("savedqueryid"),
            description=record.get("description"),
        )
        fetchxml = record.get("fetchxml")
        if fetchxml:
            fetch_root = self._parse(fetchxml, f"view {view.name} fetchxml")
            if fetch_root is not None:
                entity_el = fetch_root if fetch_root.tag == "entity" else fetch_root.find("entity")
                if entity_el is not None:
                    view.entity_name = entity_el.get("name")
        layoutxml = record.get("layoutxml")
        if not layoutxml:
            logger.warning("View %s has no layoutxml", view.name)
            return view
        root = self._parse(layoutxml, f"view {view.name}")
        if root is None:
            return view
        for cell in root.iter("cell"):
            name = cell.get("name")
            if not name:
                continue
            view.columns.append(
                ViewColumn(
                    name=name,
                    display_name=format_display_name(name, self.prefixes),
                    type=infer_field_type(name),
                    width=_width(cell),
                )
            )
        return view

    def _parse(self, text: str, what: str) -> Optional[Element]:
        try:
            return fromstring(text)
        except (ParseError, DefusedXmlException) as exc:
            logger.warning("Could not parse %s: %s", what, exc)
            return None
