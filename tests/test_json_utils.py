"""
Tests for extracting JSON and SQL payloads from model replies.
"""

import pytest

from lakeschema.models import EntityListResponse, IssueSeverity, ValidationReport
from lakeschema.orchestrator.json_utils import (
    InvalidModelResponse,
    extract_json,
    extract_sql,
    parse_model_json,
)


class TestExtractJson:

    def test_fenced_block_wins(self):
        text = 'Sure! {"ignored": true}\n```json\n{"a": 1}\n```\nAnything else?'
        assert extract_json(text) == '{"a": 1}'

    def test_unlabelled_fence(self):
        assert extract_json('```\n[1, 2]\n```') == "[1, 2]"

    def test_cut_from_prose(self):
        assert extract_json('The answer is {"a": [1, 2]} as requested.') == '{"a": [1, 2]}'

    def test_text_without_json_is_returned(self):
        assert extract_json("no payload here") == "no payload here"


class TestExtractSql:

    def test_fenced_sql(self):
        text = "Here you go:\n```sql\nCREATE TABLE t (id INT);\n```\nEnjoy"
        assert extract_sql(text) == "CREATE TABLE t (id INT);"

    def test_prose_before_statement_is_dropped(self):
        text = "The schema follows.\nCREATE TABLE t (id INT);"
        assert extract_sql(text) == "CREATE TABLE t (id INT);"

    def test_insert_detected_case_insensitively(self):
        assert extract_sql("ok: insert into t values (1);") == "insert into t values (1);"

    def test_plain_reply_is_trimmed(self):
        assert extract_sql("  SELECT 1;  ") == "SELECT 1;"


class TestParseModelJson:

    def test_entities_accept_camel_case(self):
        text = """```json
        {"entities": [{"tableName": "orders",
                       "columns": [{"name": "id", "type": "INTEGER", "isPrimaryKey": true}],
                       "foreignKeys": [{"column": "customer_id", "referencesTable": "customers"}],
                       "sourceFiles": null}]}
        ```"""
        result = parse_model_json(text, EntityListResponse, stage="infer_entities")
        entity = result.entities[0]
        assert entity.table_name == "orders"
        assert entity.columns[0].is_primary_key is True
        assert entity.foreign_keys[0].references_column == "id"
        assert entity.source_files == []

    def test_bare_list_wrapped_under_key(self):
        result = parse_model_json('[{"severity": "ERROR", "description": "bad"}]', ValidationReport,
                                  list_key="issues")
        assert result.issues[0].severity == IssueSeverity.ERROR

    def test_unknown_severity_becomes_warning(self):
        result = parse_model_json('{"issues": [{"severity": "critical", "entity": null}]}', ValidationReport)
        assert result.issues[0].severity == IssueSeverity.WARNING
        assert result.issues[0].entity == ""

    def test_trailing_commas_repaired(self):
        result = parse_model_json('{"issues": [{"severity": "warning",},],}', ValidationReport)
        assert len(result.issues) == 1

    def test_empty_reply(self):
        with pytest.raises(InvalidModelResponse) as exc_info:
            parse_model_json("   ", EntityListResponse, stage="infer_entities")
        assert exc_info.value.category == "empty_response"
        assert exc_info.value.stage == "infer_entities"

    def test_not_json(self):
        with pytest.raises(InvalidModelResponse) as exc_info:
            parse_model_json("I could not find any entities.", EntityListResponse)
        assert exc_info.value.category == "invalid_format"

    def test_wrong_shape(self):
        with pytest.raises(InvalidModelResponse) as exc_info:
            parse_model_json('{"entities": [{"columns": []}]}', EntityListResponse, stage="correct_schema")
        error = exc_info.value
        assert error.category == "schema_violation"
        assert "tableName" in error.reason or "table_name" in error.reason
        assert "correct_schema" in str(error)
