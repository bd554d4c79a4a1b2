"""Tests for schema validation and recovery."""

import json
import logging
from pathlib import Path
from typing import Any

import pytest

from boardwalk.core.schema import (
    DataSchema,
    FieldSpec,
    FieldType,
    content_preview,
    load_validated,
    parse_json,
    validate,
    validate_array,
)
from boardwalk.core.schemas import SESSION_STATS, TASK_METRIC, get_schema
from boardwalk.errors import BoardwalkError, ErrorKind

CLOSED = DataSchema("Closed", {"a": FieldSpec(FieldType.NUMBER)}, additional_properties=False)


def session_record(**overrides: Any) -> dict[str, Any]:
    record = {
        "session_id": "host-1-abc-def123",
        "started_at": "2026-01-04T12:00:00Z",
        "ended_at": "2026-01-04T13:00:00Z",
        "duration_secs": 3600,
        "tasks_attempted": 2,
        "tasks_completed": 1,
        "successful_tasks": [12],
        "failed_tasks": [13],
        "total_cost_usd": 1.25,
        "gigachad_mode": False,
        "gigachad_merges": 0,
        "repo": "acme/widgets",
    }
    record.update(overrides)
    return record


def task_record(**overrides: Any) -> dict[str, Any]:
    record = {
        "issue_number": 12,
        "started_at": "2026-01-04T12:00:00Z",
        "duration_secs": 60,
        "status": "completed",
        "iterations": 1,
        "cost_usd": 0.5,
    }
    record.update(overrides)
    return record


class TestValidate:
    """Tests for validate function."""

    def test_valid_record(self) -> None:
        result = validate(session_record(), SESSION_STATS)
        assert result.valid
        assert result.errors == []
        assert result.data == session_record()

    def test_missing_field_with_default_recovers(self) -> None:
        """A record written before gigachad_merges existed loads with the default."""
        old = session_record()
        del old["gigachad_merges"]

        result = validate(old, SESSION_STATS, recover=True)

        assert result.valid
        assert result.has_recoveries
        assert result.data is not None
        assert result.data["gigachad_merges"] == 0
        assert [e.path for e in result.errors] == ["gigachad_merges"]
        assert result.errors[0].recovered

    def test_missing_field_without_recovery_fails(self) -> None:
        old = session_record()
        del old["gigachad_merges"]

        result = validate(old, SESSION_STATS)

        assert not result.valid
        assert result.data is None
        assert result.errors[0].message == "Required field is missing"

    def test_input_is_not_mutated(self) -> None:
        """Recovery works on a copy."""
        old = session_record()
        del old["gigachad_merges"]
        validate(old, SESSION_STATS, recover=True)
        assert "gigachad_merges" not in old

    def test_required_without_default_is_unrecoverable(self) -> None:
        result = validate(session_record(session_id=None), SESSION_STATS, recover=True)
        assert not result.valid
        assert result.unrecovered[0].path == "session_id"

    def test_boolean_is_not_a_number(self) -> None:
        """JSON true must not pass as the number 1."""
        result = validate(session_record(tasks_attempted=True), SESSION_STATS)
        assert not result.valid
        assert result.errors[0].message == "Expected number, got boolean"

    def test_non_object_rejected(self) -> None:
        result = validate([1, 2], SESSION_STATS)
        assert not result.valid
        assert "Expected object for SessionStats, got array" in result.summary()

    def test_unknown_fields_kept_by_default(self) -> None:
        result = validate(session_record(extra="kept"), SESSION_STATS)
        assert result.valid
        assert result.data is not None
        assert result.data["extra"] == "kept"


class TestBounds:
    """Tests for number and string constraints."""

    def test_above_maximum_fails(self) -> None:
        result = validate(session_record(total_cost_usd=5000), SESSION_STATS)
        assert not result.valid
        assert result.errors[0].message == "Value 5000 exceeds maximum 1000"

    def test_above_maximum_recovers_to_default(self) -> None:
        result = validate(session_record(total_cost_usd=5000), SESSION_STATS, recover=True)
        assert result.valid
        assert result.data is not None
        assert result.data["total_cost_usd"] == 0

    def test_below_minimum_clamps_without_default(self) -> None:
        """Fields with no default are clamped to the violated bound."""
        result = validate(task_record(files_modified=-3), TASK_METRIC, recover=True)
        assert result.valid
        assert result.data is not None
        assert result.data["files_modified"] == 0

    def test_below_minimum_fails(self) -> None:
        result = validate(task_record(files_modified=-3), TASK_METRIC)
        assert not result.valid
        assert result.errors[0].message == "Value -3 below minimum 0"

    def test_integer_required(self) -> None:
        result = validate(task_record(iterations=1.5), TASK_METRIC)
        assert not result.valid
        assert result.errors[0].message == "Expected integer, got 1.5"

    def test_whole_float_counts_as_integer(self) -> None:
        assert validate(task_record(iterations=2.0), TASK_METRIC).valid

    def test_invalid_enum(self) -> None:
        result = validate(task_record(status="skipped"), TASK_METRIC)
        assert not result.valid
        assert "expected one of: completed, failed" in result.errors[0].message

    def test_pattern_mismatch(self) -> None:
        result = validate(task_record(started_at="yesterday"), TASK_METRIC)
        assert not result.valid
        assert result.errors[0].message == "String does not match expected pattern"

    def test_string_length(self) -> None:
        result = validate(session_record(session_id="x" * 300), SESSION_STATS)
        assert not result.valid
        assert "exceeds maximum 256" in result.errors[0].message


class TestNestedAndStrict:
    """Tests for nested objects, arrays and closed schemas."""

    def test_nested_object_error_path(self) -> None:
        schema = get_schema("Progress")
        assert schema is not None
        data = {
            "status": "in_progress",
            "last_updated": "2026-01-04T12:00:00Z",
            "current_task": {
                "id": "",
                "title": "t",
                "branch": "b",
                "started_at": "2026-01-04T12:00:00Z",
            },
        }
        result = validate(data, schema)
        assert not result.valid
        assert result.errors[0].path == "current_task.id"

    def test_array_items_checked(self) -> None:
        tags = FieldSpec(FieldType.ARRAY, items=FieldSpec(FieldType.STRING))
        schema = DataSchema("Tags", {"tags": tags})
        result = validate({"tags": ["a", 2]}, schema)
        assert not result.valid
        assert result.errors[0].path == "tags[1]"

    def test_closed_schema_rejects_unknown_fields(self) -> None:
        result = validate({"a": 1, "b": 2}, CLOSED)
        assert not result.valid
        assert result.errors[0].message == "Unknown field"

    def test_closed_schema_not_recovered(self) -> None:
        result = validate({"a": 1, "b": 2}, CLOSED, recover=True)
        assert not result.valid
        assert result.unrecovered[0].path == "b"

    def test_nested_records_dropped_when_recovering(self) -> None:
        """A corrupt task inside metrics.json is dropped, the rest kept."""
        schema = get_schema("MetricsData")
        assert schema is not None
        data = {
            "version": "1.0",
            "last_updated": "2026-01-04T12:00:00Z",
            "retention_days": 30,
            "tasks": [task_record(), task_record(issue_number="twelve")],
        }
        result = validate(data, schema, recover=True)
        assert result.valid
        assert result.data is not None
        assert len(result.data["tasks"]) == 1
        assert result.errors[0].path == "tasks[1].issue_number"

    def test_nested_records_repaired_when_recovering(self) -> None:
        """A task fixed through its defaults is kept in its repaired form."""
        schema = get_schema("MetricsData")
        assert schema is not None
        data = {
            "version": "1.0",
            "last_updated": "2026-01-04T12:00:00Z",
            "retention_days": 30,
            "tasks": [task_record(), task_record(cost_usd=5000, iterations="x")],
        }
        result = validate(data, schema, recover=True)
        assert result.valid
        assert result.has_recoveries
        assert result.data is not None
        assert result.data["tasks"][1]["cost_usd"] == 0
        assert result.data["tasks"][1]["iterations"] == 1
        assert data["tasks"][1]["cost_usd"] == 5000


class TestValidateArray:
    """Tests for validate_array function."""

    def test_invalid_element_dropped(self, caplog: pytest.LogCaptureFixture) -> None:
        """Three records with a corrupt middle one yield the outer two."""
        records = [
            session_record(session_id="first"),
            session_record(session_id=None),
            session_record(session_id="third"),
        ]
        with caplog.at_level(logging.WARNING, logger="boardwalk.core.schema"):
            result = validate_array(records, SESSION_STATS, recover=True)

        assert not result.valid
        assert result.dropped == 1
        assert [r["session_id"] for r in result.data] == ["first", "third"]
        assert result.errors[0].path == "[1].session_id"
        assert "Skipped 1 invalid SessionStats record(s)" in caplog.text

    def test_invalid_element_dropped_without_recovery(self) -> None:
        """Invalid elements are excluded in both modes."""
        records = [session_record(), session_record(total_cost_usd=-1)]
        result = validate_array(records, SESSION_STATS)
        assert result.dropped == 1
        assert len(result.data) == 1

    def test_recoverable_element_kept(self) -> None:
        old = session_record()
        del old["gigachad_merges"]
        result = validate_array([old], SESSION_STATS, recover=True)
        assert result.valid
        assert result.recovered == 1
        assert result.data[0]["gigachad_merges"] == 0

    def test_not_an_array(self) -> None:
        result = validate_array({"a": 1}, SESSION_STATS)
        assert not result.valid
        assert result.data == []


class TestParseJson:
    """Tests for parse_json and content_preview."""

    def test_success(self) -> None:
        result = parse_json('{"a": 1}')
        assert result.success
        assert result.data == {"a": 1}

    def test_error_position(self) -> None:
        result = parse_json('{\n  "a": \n}')
        assert not result.success
        assert result.error == "Expecting value at line 3 column 1 (char 10)"
        assert result.position == 10

    def test_error_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="boardwalk.core.schema"):
            parse_json('{"a": }', path=Path("stats.json"))
        assert "JSON parse error in stats.json" in caplog.text

    def test_preview_empty(self) -> None:
        assert content_preview("") == "<empty>"

    def test_preview_binary(self) -> None:
        assert content_preview("\x00\x01\x02\x03" * 10) == "<binary content>"

    def test_preview_truncated(self) -> None:
        preview = content_preview("a" * 150)
        assert preview == "a" * 100 + "..."

    def test_preview_masks_secrets(self) -> None:
        token = "ghp_" + "A" * 36
        preview = content_preview(f'{{"token": "{token}"')
        assert token not in preview
        assert "[REDACTED]" in preview


class TestLoadValidated:
    """Tests for load_validated function."""

    def test_absent_file_returns_none(self, tmp_path: Path) -> None:
        assert load_validated(tmp_path / "missing.json", TASK_METRIC) is None

    def test_valid_file(self, tmp_path: Path) -> None:
        path = tmp_path / "task.json"
        path.write_text(json.dumps(task_record()))
        assert load_validated(path, TASK_METRIC) == task_record()

    def test_parse_failure_is_corrupt_record(self, tmp_path: Path) -> None:
        path = tmp_path / "task.json"
        path.write_text('{"issue_number": ')
        with pytest.raises(BoardwalkError) as exc_info:
            load_validated(path, TASK_METRIC)
        error = exc_info.value
        assert error.kind == ErrorKind.CORRUPT_RECORD
        assert error.path == path
        assert error.details["position"] == 17
        assert error.details["preview"] == '{"issue_number": '

    def test_validation_failure_is_corrupt_record(self, tmp_path: Path) -> None:
        path = tmp_path / "task.json"
        path.write_text(json.dumps(task_record(status="skipped")))
        with pytest.raises(BoardwalkError) as exc_info:
            load_validated(path, TASK_METRIC)
        assert exc_info.value.kind == ErrorKind.CORRUPT_RECORD
        assert "TaskMetric failed validation: status" in exc_info.value.message
