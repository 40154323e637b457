"""
Format parsers.

parse_file() is the single entry point: it dispatches on the file
extension and, for unknown extensions, tries JSON, then CSV, then text,
keeping the first parser that accepts the payload.
"""
import logging
from pathlib import PurePosixPath
from typing import Callable, Dict, Union

from lakeschema.models import ParsedFile
from .base import ParseError, decode_content
from .csv_parser import parse_csv
from .json_parser import parse_json
from .text_parser import parse_text
from .xml_parser import parse_xml

logger = logging.getLogger("lakeschema.parsers")

Parser = Callable[[str, str], ParsedFile]

PARSERS_BY_EXTENSION: Dict[str, Parser] = {
    "csv": parse_csv,
    "json": parse_json,
    "xml": parse_xml,
    "txt": parse_text,
    "tsv": parse_text,
    "psv": parse_text,
}

FALLBACK_CHAIN = (parse_json, parse_csv, parse_text)


def file_extension(filename: str) -> str:
    return PurePosixPath(filename.replace("\\", "/")).suffix.lstrip(".").lower()


def parse_file(filename: str, raw_content: Union[bytes, str]) -> ParsedFile:
    """
    Parse one file into a ParsedFile.

    Raises:
        ParseError: the extension names a format the content does not satisfy
    """
    content = decode_content(raw_content)
    parser = PARSERS_BY_EXTENSION.get(file_extension(filename))
    if parser is not None:
        return parser(filename, content)

    for candidate in FALLBACK_CHAIN:
        try:
            return candidate(filename, content)
        except ParseError as e:
            logger.debug(f"{filename}: {e.reason}; trying next parser")
    # parse_text never raises, so this is unreachable
    raise ParseError(filename, "text", "no parser accepted the payload")


__all__ = [
    "ParseError",
    "parse_file",
    "parse_csv",
    "parse_json",
    "parse_xml",
    "parse_text",
    "file_extension",
]
