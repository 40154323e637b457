"""
XML parser.

The document is converted into plain nested dicts (attributes under
"@name", mixed text under "#text", repeated child tags collected into
lists) and records are taken from the first list found in that tree.
"""
from typing import Any, Dict, List, Optional
import xml.etree.ElementTree as ET

from lakeschema.models import ParsedFile
from .base import ParseError, as_record, build_parsed_file, strip_bom


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1] if "}" in tag else tag


def element_to_value(element: ET.Element) -> Any:
    """Convert an element into a string (leaf) or a dict (attributes / children)."""
    children = list(element)
    text = (element.text or "").strip()

    if not children and not element.attrib:
        return text

    node: Dict[str, Any] = {f"@{_local_name(k)}": v for k, v in element.attrib.items()}
    for child in children:
        key = _local_name(child.tag)
        value = element_to_value(child)
        if key in node:
            if not isinstance(node[key], list):
                node[key] = [node[key]]
            node[key].append(value)
        else:
            node[key] = value
    if text:
        node["#text"] = text
    return node


def find_first_list(value: Any) -> Optional[List[Any]]:
    """Depth-first search for the first list in document order."""
    if isinstance(value, list):
        return value
    if isinstance(value, dict):
        for child in value.values():
            found = find_first_list(child)
            if found is not None:
                return found
    return None


def locate_records(document: Dict[str, Any]) -> List[Any]:
    found = find_first_list(document)
    if found is not None:
        return found

    # No repeated element anywhere: unwrap root -> collection -> items
    root = next(iter(document.values()), None)
    if not isinstance(root, dict):
        return []
    collection_keys = [key for key in root if not key.startswith("@") and key != "#text"]
    if not collection_keys:
        return [root]
    items = root[collection_keys[0]]
    return items if isinstance(items, list) else [items]


def parse_xml(filename: str, content: str) -> ParsedFile:
    content = strip_bom(content)
    try:
        root = ET.fromstring(content.strip())
    except ET.ParseError as e:
        raise ParseError(filename, "xml", str(e)) from e

    document = {_local_name(root.tag): element_to_value(root)}
    records = [as_record(item) for item in locate_records(document)]
    return build_parsed_file(filename, "xml", records, content)
