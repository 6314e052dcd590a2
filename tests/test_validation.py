"""Test parameter validation."""

from prompthub.models import ParameterSpec
from prompthub.validation import check_value, prepare_inputs, validate_inputs


def specs(**raw):
    return {name: ParameterSpec.from_dict(d, name) for name, d in raw.items()}


def test_valid_inputs():
    result = validate_inputs({"text": "hello"}, specs(text={"type": "string", "required": True}))
    assert result.valid
    assert result.errors == []


def test_missing_required():
    result = validate_inputs({}, specs(text={"type": "string", "required": True}))
    assert not result.valid
    assert result.errors == ["Required parameter 'text' is missing"]


def test_missing_optional_is_fine():
    result = validate_inputs({}, specs(style={"type": "string"}))
    assert result.valid


def test_type_error_stops_further_checks():
    errors = check_value("text", 5, ParameterSpec.from_dict({"type": "string", "minLength": 3}))
    assert errors == ["Parameter 'text' must be a string"]


def test_bool_is_not_a_number():
    errors = check_value("n", True, ParameterSpec.from_dict({"type": "number"}))
    assert errors == ["Parameter 'n' must be a number"]


def test_every_string_violation_reported_in_order():
    spec = ParameterSpec.from_dict({
        "type": "string", "maxLength": 2, "pattern": "^[0-9]+$", "enum": ["1", "2"],
    })
    errors = check_value("code", "abc", spec)
    assert errors == [
        "Parameter 'code' must be at most 2 characters",
        "Parameter 'code' does not match required pattern '^[0-9]+$'",
        "Parameter 'code' must be one of: 1, 2",
    ]


def test_pattern_is_a_search():
    spec = ParameterSpec.from_dict({"type": "string", "pattern": "ell"})
    assert check_value("s", "hello", spec) == []


def test_number_bounds():
    spec = ParameterSpec.from_dict({"type": "number", "minimum": 1, "maximum": 10})
    assert check_value("n", 0, spec) == ["Parameter 'n' must be at least 1"]
    assert check_value("n", 11, spec) == ["Parameter 'n' must be at most 10"]
    assert check_value("n", 5.5, spec) == []


def test_array_items_checked():
    spec = ParameterSpec.from_dict({"type": "array", "minItems": 1, "items": {"type": "string"}})
    assert check_value("tags", [], spec) == ["Parameter 'tags' must have at least 1 items"]
    assert check_value("tags", ["a", 2], spec) == ["Parameter 'tags[1]' must be a string"]


def test_object_properties_checked():
    spec = ParameterSpec.from_dict({
        "type": "object",
        "properties": {"name": {"type": "string", "required": True}, "age": {"type": "number"}},
    })
    errors = check_value("user", {"age": "old"}, spec)
    assert errors == [
        "Required parameter 'user.name' is missing",
        "Parameter 'user.age' must be a number",
    ]


def test_unexpected_keys_only_warn():
    result = validate_inputs({"text": "hi", "extra": 1}, specs(text={"type": "string"}))
    assert result.valid
    assert result.warnings == ["Unexpected parameter 'extra' will be ignored"]


def test_validation_is_deterministic():
    s = specs(text={"type": "string", "required": True, "minLength": 5}, n={"type": "number"})
    inputs = {"text": "hi", "n": "x", "other": True}
    first = validate_inputs(inputs, s)
    second = validate_inputs(inputs, s)
    assert first == second
    assert inputs == {"text": "hi", "n": "x", "other": True}


def test_prepare_inputs_fills_defaults_and_drops_undeclared():
    s = specs(
        text={"type": "string", "required": True},
        style={"type": "string", "default": "brief"},
        note={"type": "string"},
    )
    assert prepare_inputs({"text": "hi", "junk": 1}, s) == {"text": "hi", "style": "brief"}


def test_prepare_inputs_keeps_explicit_values():
    s = specs(style={"type": "string", "default": "brief"})
    assert prepare_inputs({"style": "detailed"}, s) == {"style": "detailed"}
