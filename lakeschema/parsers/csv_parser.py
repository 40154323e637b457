"""
CSV parser.

Handles the usual data-lake mess: a BOM, semicolon or tab delimiters,
header lines repeated when files were concatenated, and rows with too
few or too many cells.
"""
import csv
import logging
import re
from typing import Dict, List

from lakeschema.models import ParsedFile
from .base import ParseError, build_parsed_file, strip_bom

logger = logging.getLogger("lakeschema.parsers.csv")

CANDIDATE_DELIMITERS = (",", ";", "\t")


def detect_delimiter(header_line: str) -> str:
    """Pick the candidate occurring most often in the header line (ties keep list order)."""
    best = CANDIDATE_DELIMITERS[0]
    best_count = header_line.count(best)
    for candidate in CANDIDATE_DELIMITERS[1:]:
        count = header_line.count(candidate)
        if count > best_count:
            best, best_count = candidate, count
    return best


def _normalize_line(line: str) -> str:
    return re.sub(r"\s+", "", line).lower()


def _header_names(cells: List[str]) -> List[str]:
    names = []
    for index, cell in enumerate(cells):
        name = cell.strip() or f"column_{index + 1}"
        # Keep names unique so no cell is silently overwritten
        base, suffix = name, 2
        while name in names:
            name = f"{base}_{suffix}"
            suffix += 1
        names.append(name)
    return names


def parse_csv(filename: str, content: str) -> ParsedFile:
    content = strip_bom(content)
    lines = [line for line in content.splitlines() if line.strip()]
    if not lines:
        return build_parsed_file(filename, "csv", [], content)

    header_line = lines[0]
    delimiter = detect_delimiter(header_line)

    normalized_header = _normalize_line(header_line)
    data_lines = [line for line in lines[1:] if _normalize_line(line) != normalized_header]
    dropped = len(lines) - 1 - len(data_lines)
    if dropped:
        logger.debug(f"{filename}: dropped {dropped} repeated header line(s)")

    try:
        rows = list(csv.reader([header_line] + data_lines, delimiter=delimiter, skipinitialspace=True))
    except csv.Error as e:
        raise ParseError(filename, "csv", str(e)) from e

    headers = _header_names(rows[0])
    records: List[Dict[str, str]] = []
    ragged = 0
    for cells in rows[1:]:
        if len(cells) != len(headers):
            ragged += 1
        values = [cell.strip() for cell in cells[:len(headers)]]
        values += [""] * (len(headers) - len(values))
        records.append(dict(zip(headers, values)))

    if ragged:
        logger.debug(f"{filename}: {ragged} row(s) with a column count different from the header")

    return build_parsed_file(filename, "csv", records, content, declared_headers=headers)
