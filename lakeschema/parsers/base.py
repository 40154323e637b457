"""
Shared helpers for the format parsers.

Every parser turns raw text into a list of records and hands them to
build_parsed_file(), which applies the common rules: header union in
first-seen order, capped sample rows, true row count and a raw preview.
"""
from typing import Any, Dict, Iterable, List, Sequence, Union

from configs import RAW_PREVIEW_CHARS, SAMPLE_ROW_LIMIT
from lakeschema.models import ParsedFile


BOM = "\ufeff"


class ParseError(Exception):
    """Raised when a payload cannot be read in the requested format."""

    def __init__(self, filename: str, fmt: str, reason: str):
        self.filename = filename
        self.format = fmt
        self.reason = reason
        super().__init__(f"Could not parse {filename} as {fmt}: {reason}")


def decode_content(raw_content: Union[bytes, str]) -> str:
    """Decode bytes as UTF-8; undecodable bytes become U+FFFD instead of failing."""
    if isinstance(raw_content, bytes):
        return raw_content.decode("utf-8", errors="replace")
    return raw_content


def strip_bom(text: str) -> str:
    return text[1:] if text.startswith(BOM) else text


def as_record(item: Any) -> Dict[str, Any]:
    """Records are mappings; bare scalars and lists are wrapped under "value"."""
    if isinstance(item, dict):
        return item
    return {"value": item}


def collect_headers(records: Iterable[Dict[str, Any]], declared: Sequence[str] = ()) -> List[str]:
    """Union of declared headers and record keys, in order of first appearance."""
    seen: Dict[str, None] = {}
    for name in declared:
        seen.setdefault(name, None)
    for record in records:
        for key in record:
            seen.setdefault(str(key), None)
    return list(seen)


def build_parsed_file(
    filename: str,
    fmt: str,
    records: List[Dict[str, Any]],
    content: str,
    declared_headers: Sequence[str] = (),
) -> ParsedFile:
    sample_rows = records[:SAMPLE_ROW_LIMIT]
    return ParsedFile(
        filename=filename,
        format=fmt,
        headers=collect_headers(sample_rows, declared_headers),
        sample_rows=sample_rows,
        row_count=len(records),
        raw_preview=content[:RAW_PREVIEW_CHARS],
    )
