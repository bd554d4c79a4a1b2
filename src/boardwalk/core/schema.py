"""Schema validation with bounds checking for persisted JSON files.

Operational files (stats, metrics, locks) are appended to over long-running
sessions. A single corrupted or partially-upgraded record must not make the
whole file unreadable, so validation can optionally *recover*: a field that
declares a ``default`` may be replaced instead of rejecting the record, and
invalid elements of a collection may be dropped.

Two layers:
- ``parse_json`` turns raw text into data and never raises.
- ``validate`` / ``validate_array`` check parsed data against a ``DataSchema``.

``load_validated`` combines both for a single file on disk.
"""

import copy
import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from ..errors import corrupt_record
from ..redact import DEFAULT_MASKER, SecretMasker
from .atomic_io import read_text

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 100
MAX_LOGGED_ERRORS = 5


class FieldType(str, Enum):
    """JSON value types a field can be constrained to."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


@dataclass(frozen=True)
class FieldSpec:
    """Constraints for one field.

    Attributes:
        type: Expected JSON type.
        required: Whether a missing (or null) value is an error.
        min: Inclusive lower bound for numbers.
        max: Inclusive upper bound for numbers.
        integer: Numbers must be whole.
        min_length: Minimum string length.
        max_length: Maximum string length.
        pattern: Regex a string must match (searched, so anchor it).
        enum: Allowed string values.
        default: Replacement used when recovering. Leave as MISSING to make
            the field unrecoverable.
        properties: Nested constraints for object fields.
        items: Constraints for array elements. A ``DataSchema`` here makes
            each element a record that is dropped, not patched, when invalid.
    """

    type: FieldType
    required: bool = False
    min: float | None = None
    max: float | None = None
    integer: bool = False
    min_length: int | None = None
    max_length: int | None = None
    pattern: str | None = None
    enum: tuple[str, ...] | None = None
    default: Any = MISSING
    properties: dict[str, "FieldSpec"] | None = None
    items: "FieldSpec | DataSchema | None" = None

    @property
    def has_default(self) -> bool:
        return self.default is not MISSING

    def default_value(self) -> Any:
        # Defaults such as [] must not be shared between records
        return copy.deepcopy(self.default)


@dataclass(frozen=True)
class DataSchema:
    """Named set of field constraints for one persisted structure."""

    name: str
    fields: dict[str, FieldSpec]
    additional_properties: bool = True


@dataclass
class FieldError:
    """One validation problem.

    ``value`` holds the offending value, or the replacement when
    ``recovered`` is True.
    """

    path: str
    message: str
    value: Any = None
    recovered: bool = False


@dataclass
class ValidationResult:
    """Outcome of validating one record."""

    valid: bool
    data: dict[str, Any] | None
    errors: list[FieldError] = field(default_factory=list)
    has_recoveries: bool = False

    @property
    def unrecovered(self) -> list[FieldError]:
        return [e for e in self.errors if not e.recovered]

    def summary(self) -> str:
        """Short description of the unrecovered errors, for messages."""
        return "; ".join(f"{e.path or '<root>'}: {e.message}" for e in self.unrecovered)


@dataclass
class ArrayValidationResult:
    """Outcome of validating a collection of records."""

    valid: bool
    data: list[dict[str, Any]]
    errors: list[FieldError] = field(default_factory=list)
    dropped: int = 0
    recovered: int = 0


@dataclass
class ParseResult:
    """Outcome of ``parse_json``. Exactly one of ``data``/``error`` is meaningful."""

    success: bool
    data: Any = None
    error: str | None = None
    position: int | None = None


# ============================================================================
# Parsing
# ============================================================================


def content_preview(content: str, masker: SecretMasker = DEFAULT_MASKER) -> str:
    """Truncated, single-line, secret-masked preview of raw file content."""
    if not content:
        return "<empty>"
    sample = content[:200]
    printable = sum(1 for c in sample if c.isprintable() or c in "\t\r\n")
    if printable / len(sample) < 0.8:
        return "<binary content>"
    preview = content[:PREVIEW_LENGTH].replace("\n", "\\n").replace("\r", "\\r")
    preview = masker.mask(preview)
    return f"{preview}..." if len(content) > PREVIEW_LENGTH else preview


def parse_json(
    content: str,
    path: Path | None = None,
    masker: SecretMasker = DEFAULT_MASKER,
) -> ParseResult:
    """Parse JSON text without raising.

    Args:
        content: Raw text.
        path: Source file, used only for log context.
        masker: Masks secrets in the logged content preview.

    Returns:
        ParseResult with ``data`` on success, or ``error`` (including line,
        column and character offset) and ``position`` on failure.
    """
    try:
        return ParseResult(success=True, data=json.loads(content))
    except json.JSONDecodeError as e:
        message = f"{e.msg} at line {e.lineno} column {e.colno} (char {e.pos})"
        where = f" in {path}" if path else ""
        logger.warning("JSON parse error%s: %s", where, message)
        logger.debug("  Content preview: %s", content_preview(content, masker))
        logger.debug("  Content length: %d chars", len(content))
        return ParseResult(success=False, error=message, position=e.pos)


# ============================================================================
# Validation
# ============================================================================


def _type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int | float):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def _truncate(value: Any) -> Any:
    if isinstance(value, str) and len(value) > 50:
        return value[:50] + "..."
    return value


class _Validator:
    """Walks one record, collecting errors and applying recoveries."""

    def __init__(self, recover: bool) -> None:
        self.recover = recover
        self.errors: list[FieldError] = []
        self.recovered = False

    def _fail(self, spec: FieldSpec, path: str, message: str, value: Any) -> tuple[Any, bool]:
        """Record an error, substituting the default when recovery allows it."""
        if self.recover and spec.has_default:
            replacement = spec.default_value()
            self.errors.append(FieldError(path, f"{message}, using default", replacement, True))
            self.recovered = True
            return replacement, True
        self.errors.append(FieldError(path, message, _truncate(value)))
        return value, False

    def check(self, value: Any, spec: FieldSpec, path: str) -> tuple[Any, bool]:
        """Validate one value. Returns (possibly replaced value, replaced?)."""
        if value is None or value is MISSING:
            if spec.required:
                return self._fail(spec, path, "Required field is missing", None)
            return value, False

        actual = _type_name(value)
        if actual != spec.type.value:
            return self._fail(spec, path, f"Expected {spec.type.value}, got {actual}", value)

        if spec.type == FieldType.NUMBER:
            return self._check_number(value, spec, path)
        if spec.type == FieldType.STRING:
            return self._check_string(value, spec, path)
        if spec.type == FieldType.OBJECT and spec.properties:
            return self._check_object(value, spec.properties, path)
        if spec.type == FieldType.ARRAY and spec.items is not None:
            return self._check_array(value, spec.items, path)
        return value, False

    def _check_number(self, value: float, spec: FieldSpec, path: str) -> tuple[Any, bool]:
        if spec.integer and not float(value).is_integer():
            replaced, ok = self._fail(spec, path, f"Expected integer, got {value}", value)
            if ok:
                return replaced, True
        for bound, too_far, word in (
            (spec.min, lambda v, b: v < b, "below minimum"),
            (spec.max, lambda v, b: v > b, "exceeds maximum"),
        ):
            if bound is None or not too_far(value, bound):
                continue
            message = f"Value {value} {word} {bound:g}"
            if self.recover:
                # Out-of-range numbers fall back to the default, else the bound
                replacement = spec.default_value() if spec.has_default else bound
                if spec.integer and isinstance(replacement, float):
                    replacement = int(replacement)
                self.errors.append(
                    FieldError(path, f"{message}, using {replacement}", replacement, True)
                )
                self.recovered = True
                return replacement, True
            self.errors.append(FieldError(path, message, value))
        return value, False

    def _check_string(self, value: str, spec: FieldSpec, path: str) -> tuple[Any, bool]:
        problems: list[str] = []
        if spec.min_length is not None and len(value) < spec.min_length:
            problems.append(f"String length {len(value)} is below minimum {spec.min_length}")
        if spec.max_length is not None and len(value) > spec.max_length:
            problems.append(f"String length {len(value)} exceeds maximum {spec.max_length}")
        if spec.pattern is not None and not re.search(spec.pattern, value):
            problems.append("String does not match expected pattern")
        if spec.enum is not None and value not in spec.enum:
            allowed = ", ".join(spec.enum)
            problems.append(f'Invalid enum value "{value}", expected one of: {allowed}')
        if not problems:
            return value, False
        if self.recover and spec.has_default:
            return self._fail(spec, path, "; ".join(problems), value)
        for problem in problems:
            self.errors.append(FieldError(path, problem, _truncate(value)))
        return value, False

    def _check_object(
        self, value: dict[str, Any], properties: dict[str, FieldSpec], path: str
    ) -> tuple[Any, bool]:
        result = dict(value)
        changed = False
        for name, spec in properties.items():
            sub_path = f"{path}.{name}" if path else name
            new, replaced = self.check(value.get(name, MISSING), spec, sub_path)
            if replaced:
                result[name] = new
                changed = True
        return (result, True) if changed else (value, False)

    def _check_array(
        self, value: list[Any], items: "FieldSpec | DataSchema", path: str
    ) -> tuple[Any, bool]:
        if isinstance(items, DataSchema):
            nested = validate_array(value, items, recover=self.recover, source=path)
            for error in nested.errors:
                error.path = f"{path}{error.path}"
                if self.recover:
                    error.message = f"{error.message} (element dropped)"
                    error.recovered = True
            self.errors.extend(nested.errors)
            if self.recover and (nested.dropped or nested.recovered):
                self.recovered = True
                return nested.data, True
            return value, False

        result = list(value)
        changed = False
        for i, item in enumerate(value):
            new, replaced = self.check(item, items, f"{path}[{i}]")
            if replaced:
                result[i] = new
                changed = True
        return (result, True) if changed else (value, False)


def _log_errors(errors: list[FieldError], schema: DataSchema, source: str | None) -> None:
    if not errors or not logger.isEnabledFor(logging.DEBUG):
        return
    where = f" in {source}" if source else ""
    unrecovered = [e for e in errors if not e.recovered]
    if unrecovered:
        logger.debug("Schema validation errors for %s%s:", schema.name, where)
        for error in unrecovered[:MAX_LOGGED_ERRORS]:
            logger.debug("  - %s: %s", error.path or "<root>", error.message)
        if len(unrecovered) > MAX_LOGGED_ERRORS:
            logger.debug("  ... and %d more errors", len(unrecovered) - MAX_LOGGED_ERRORS)
    recovered = len(errors) - len(unrecovered)
    if recovered:
        logger.debug("Recovered %d field(s) of %s%s using defaults", recovered, schema.name, where)


def validate(
    data: Any,
    schema: DataSchema,
    recover: bool = False,
    source: str | None = None,
) -> ValidationResult:
    """Validate one record against a schema.

    Args:
        data: Parsed JSON value; must be an object.
        schema: Constraints to check.
        recover: Replace invalid or missing fields that declare a default
            instead of failing.
        source: File or location, used only for log context.

    Returns:
        ValidationResult. ``data`` is a copy with recoveries applied, or
        None when unrecovered errors remain.
    """
    if not isinstance(data, dict):
        error = FieldError("", f"Expected object for {schema.name}, got {_type_name(data)}")
        return ValidationResult(valid=False, data=None, errors=[error])

    validator = _Validator(recover)
    result = dict(data)
    for name, spec in schema.fields.items():
        new, replaced = validator.check(data.get(name, MISSING), spec, name)
        if replaced:
            result[name] = new

    if not schema.additional_properties:
        # Unknown keys are not recoverable
        for name in sorted(data.keys() - schema.fields.keys()):
            validator.errors.append(FieldError(name, "Unknown field", _truncate(data[name])))

    _log_errors(validator.errors, schema, source)
    valid = all(e.recovered for e in validator.errors)
    return ValidationResult(
        valid=valid,
        data=result if valid else None,
        errors=validator.errors,
        has_recoveries=validator.recovered,
    )


def validate_array(
    data: Any,
    item_schema: DataSchema,
    recover: bool = False,
    source: str | None = None,
) -> ArrayValidationResult:
    """Validate each element of a collection independently.

    Elements that fail validation are dropped from ``data``; they are never
    patched into shape. With ``recover`` an element that only needed
    defaults is repaired and kept, and counted in ``recovered``. ``valid`` is
    False if anything was dropped.
    """
    if not isinstance(data, list):
        error = FieldError("", f"Expected array, got {_type_name(data)}")
        return ArrayValidationResult(valid=False, data=[], errors=[error])

    kept: list[dict[str, Any]] = []
    recovered = 0
    errors: list[FieldError] = []
    for i, item in enumerate(data):
        item_source = f"{source}[{i}]" if source else f"[{i}]"
        result = validate(item, item_schema, recover=recover, source=item_source)
        if result.valid and result.data is not None:
            kept.append(result.data)
            if result.has_recoveries:
                recovered += 1
            continue
        for error in result.unrecovered:
            suffix = f".{error.path}" if error.path else ""
            errors.append(FieldError(f"[{i}]{suffix}", error.message, error.value))

    dropped = len(data) - len(kept)
    if dropped:
        where = f" in {source}" if source else ""
        logger.warning("Skipped %d invalid %s record(s)%s", dropped, item_schema.name, where)
    return ArrayValidationResult(
        valid=dropped == 0, data=kept, errors=errors, dropped=dropped, recovered=recovered
    )


def read_record_text(path: Path) -> str | None:
    """``read_text`` for persisted records: undecodable bytes are a corrupt record.

    Raises:
        BoardwalkError: kind ``corrupt_record`` for non-UTF-8 content, kind
            ``file_error`` when the file cannot be read.
    """
    try:
        return read_text(path)
    except UnicodeDecodeError as e:
        raise corrupt_record(
            path, f"not valid UTF-8 ({e.reason})", position=e.start, preview="<binary content>"
        ) from e


def load_validated(
    path: Path,
    schema: DataSchema,
    recover: bool = False,
    masker: SecretMasker = DEFAULT_MASKER,
) -> dict[str, Any] | None:
    """Read, parse and validate one required record.

    Returns:
        The validated record, or None if the file does not exist.

    Raises:
        BoardwalkError: kind ``corrupt_record`` when the file is not UTF-8, cannot be parsed
            or fails validation, kind ``file_error`` when it cannot be read.
    """
    content = read_record_text(path)
    if content is None:
        return None
    parsed = parse_json(content, path=path, masker=masker)
    if not parsed.success:
        raise corrupt_record(
            path,
            parsed.error or "invalid JSON",
            position=parsed.position,
            preview=content_preview(content, masker),
        )
    result = validate(parsed.data, schema, recover=recover, source=str(path))
    if not result.valid or result.data is None:
        raise corrupt_record(path, f"{schema.name} failed validation: {result.summary()}")
    return result.data
