"""
JSON parser.

Accepts the lenient JSON that tends to land in a lake: BOMs, // and /* */
comments, and trailing commas. Records are located by looking through
the usual API wrapper keys before falling back to a single record.
"""
import json
import re
from typing import Any, Dict, List

from lakeschema.models import ParsedFile
from .base import ParseError, as_record, build_parsed_file, strip_bom

WRAPPER_KEYS = ("data", "items", "results", "rows", "records", "value")

# A string literal (kept) or a comment (dropped)
_STRING_OR_COMMENT = re.compile(r'("(?:\\.|[^"\\])*")|//[^\n]*|/\*[\s\S]*?\*/')
# A string literal (kept) or a comma directly before a closing bracket (dropped)
_STRING_OR_TRAILING_COMMA = re.compile(r'("(?:\\.|[^"\\])*")|,(\s*[\]}])')


def strip_json_comments(text: str) -> str:
    return _STRING_OR_COMMENT.sub(lambda m: m.group(1) or "", text)


def remove_trailing_commas(text: str) -> str:
    return _STRING_OR_TRAILING_COMMA.sub(lambda m: m.group(1) or m.group(2), text)


def loads_lenient(text: str) -> Any:
    """json.loads with one repair attempt for trailing commas."""
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return json.loads(remove_trailing_commas(text))


def locate_records(document: Any) -> List[Any]:
    """Find the list of records inside a decoded document."""
    if isinstance(document, list):
        return document
    if not isinstance(document, dict):
        return []

    for key in WRAPPER_KEYS:
        if isinstance(document.get(key), list):
            return document[key]

    array_keys = [key for key, value in document.items() if isinstance(value, list)]
    if len(array_keys) == 1:
        return document[array_keys[0]]

    return [document]


def parse_json(filename: str, content: str) -> ParsedFile:
    content = strip_bom(content)
    cleaned = strip_json_comments(content).strip()
    if not cleaned:
        raise ParseError(filename, "json", "empty document")

    try:
        document = loads_lenient(cleaned)
    except json.JSONDecodeError as e:
        raise ParseError(filename, "json", str(e)) from e

    records: List[Dict[str, Any]] = [as_record(item) for item in locate_records(document)]
    return build_parsed_file(filename, "json", records, content)
