"""
Robust JSON and SQL extraction for language-model replies.

PROBLEM
-------
Models wrap their answer in prose and markdown fences:
    "Here is the schema:\n```sql\nCREATE TABLE ...\n```\nLet me know!"

SOLUTION
--------
1. Prefer the content of a fenced block.
2. Otherwise cut the payload out of the surrounding text heuristically.
3. Validate JSON payloads against a pydantic shape, raising a single
   typed error (InvalidModelResponse) when the reply is unusable.

InvalidModelResponse means "the model answered but the answer cannot be
used". It is deliberately not an LLMError: gateway errors mean "no answer".
"""
from dataclasses import dataclass
import json
import re
from typing import Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from lakeschema.parsers.json_parser import remove_trailing_commas

T = TypeVar("T", bound=BaseModel)

_JSON_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)
_SQL_FENCE = re.compile(r"```(?:sql)?\s*([\s\S]*?)```", re.IGNORECASE)
_SQL_START = re.compile(r"\b(?:CREATE\s+TABLE|INSERT\s+INTO|DROP\s+TABLE|ALTER\s+TABLE)\b", re.IGNORECASE)


# ============================================================
# CONTROLLED FAILURE EXCEPTION
# ============================================================

@dataclass(eq=False)
class InvalidModelResponse(Exception):
    """
    Raised when a model reply cannot be turned into the expected payload.

    Categories:
    - empty_response: the model returned nothing
    - invalid_format: no parseable JSON / SQL in the reply
    - schema_violation: JSON parsed but does not match the expected shape
    """
    reason: str
    category: str
    stage: Optional[str] = None
    raw_response_preview: Optional[str] = None

    def __str__(self):
        parts = [f"Invalid model response: {self.reason}", f"[{self.category}]"]
        if self.stage:
            parts.append(f"(stage={self.stage})")
        return " ".join(parts)


# ============================================================
# EXTRACTION
# ============================================================

def extract_json(text: str) -> str:
    """
    Return the JSON payload embedded in a reply.

    A fenced block wins. Otherwise the substring from the first '{' or '['
    to the last '}' or ']' is returned; text without either is returned as is.

    Examples:
        >>> extract_json('```json\\n{"a": 1}\\n```')
        '{"a": 1}'
        >>> extract_json('Result: [1, 2] done')
        '[1, 2]'
    """
    match = _JSON_FENCE.search(text)
    if match:
        return match.group(1).strip()

    starts = [i for i in (text.find("{"), text.find("[")) if i != -1]
    if not starts:
        return text
    start = min(starts)
    end = max(text.rfind("}"), text.rfind("]"))
    if end < start:
        return text[start:]
    return text[start:end + 1]


def extract_sql(text: str) -> str:
    """
    Return the SQL embedded in a reply: a fenced block, else everything from
    the first CREATE TABLE / INSERT INTO / DROP TABLE / ALTER TABLE, else the
    trimmed reply.
    """
    match = _SQL_FENCE.search(text)
    if match:
        return match.group(1).strip()

    match = _SQL_START.search(text)
    if match:
        return text[match.start():].strip()
    return text.strip()


# ============================================================
# VALIDATED PARSING
# ============================================================

def _preview(text: str, limit: int = 200) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


def parse_model_json(text: str, shape: Type[T], stage: Optional[str] = None, list_key: Optional[str] = None) -> T:
    """
    Extract, decode and validate a JSON reply.

    Args:
        text: Raw model reply
        shape: pydantic model the payload must satisfy
        stage: Stage name, recorded on failure
        list_key: When the model returns a bare array, wrap it under this key

    Raises:
        InvalidModelResponse: empty reply, undecodable JSON or shape mismatch
    """
    if not text or not text.strip():
        raise InvalidModelResponse("model returned an empty reply", "empty_response", stage)

    candidate = extract_json(text)
    try:
        payload = json.loads(candidate)
    except json.JSONDecodeError:
        try:
            payload = json.loads(remove_trailing_commas(candidate))
        except json.JSONDecodeError as e:
            raise InvalidModelResponse(
                f"reply is not valid JSON: {e}", "invalid_format", stage, _preview(text)
            ) from e

    if isinstance(payload, list) and list_key:
        payload = {list_key: payload}

    try:
        return shape.model_validate(payload)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"]) or "<root>"
        raise InvalidModelResponse(
            f"{location}: {first['msg']}", "schema_violation", stage, _preview(text)
        ) from e
