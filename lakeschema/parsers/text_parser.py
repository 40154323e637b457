"""
Delimited text parser (pipe or tab separated, '#' comments).

This is the parser of last resort: it never raises, so any payload can
at least be described by its lines.
"""
import re
from typing import Dict, List, Optional

from lakeschema.models import ParsedFile
from .base import build_parsed_file, strip_bom

COMMENT_PREFIX = "#"
_COMMENT_MARKER = re.compile(r"^#+\s*")

# A comment line with at least this many tokens is taken as the header
MIN_COMMENT_HEADER_TOKENS = 3


def detect_delimiter(line: str) -> str:
    return "|" if line.count("|") > line.count("\t") else "\t"


def _split(line: str, delimiter: str) -> List[str]:
    return [cell.strip() for cell in line.split(delimiter)]


def parse_text(filename: str, content: str) -> ParsedFile:
    content = strip_bom(content)
    lines = [line for line in content.splitlines() if line.strip()]

    first_data_line = next((line for line in lines if not line.lstrip().startswith(COMMENT_PREFIX)), "")
    delimiter = detect_delimiter(first_data_line)

    header: Optional[List[str]] = None
    data_start = 0
    for index, line in enumerate(lines):
        stripped = line.strip()
        if stripped.startswith(COMMENT_PREFIX):
            tokens = _split(_COMMENT_MARKER.sub("", stripped), delimiter)
            if len(tokens) >= MIN_COMMENT_HEADER_TOKENS:
                header = tokens
            continue
        if header is None:
            header = _split(stripped, delimiter)
            data_start = index + 1
        else:
            data_start = index
        break
    else:
        data_start = len(lines)

    header = header or []
    records: List[Dict[str, str]] = []
    for line in lines[data_start:]:
        if line.strip().startswith(COMMENT_PREFIX):
            continue
        values = _split(line.strip(), delimiter)
        records.append({name: values[i] if i < len(values) else "" for i, name in enumerate(header)})

    return build_parsed_file(filename, "text", records, content, declared_headers=header)
