"""Parameter validation — checks candidate inputs against a prompt's declared schema.

Everything here is a pure function: no I/O, no mutation of the arguments.
"""

from __future__ import annotations

import re
from typing import Any

from prompthub.models import ParameterSpec, ValidationResult

_ARTICLES = {"string": "a", "number": "a", "boolean": "a", "array": "an", "object": "an"}


def validate_inputs(inputs: dict[str, Any], specs: dict[str, ParameterSpec]) -> ValidationResult:
    """Validate an input map against parameter specs.

    Required-but-missing keys produce one error and skip further checks.
    Present keys are type-checked first, then every constraint is checked and
    each violation contributes its own error. Undeclared keys produce warnings
    and never affect validity.
    """
    errors: list[str] = []
    warnings: list[str] = []

    for name, spec in specs.items():
        if name not in inputs:
            if spec.required:
                errors.append(f"Required parameter '{name}' is missing")
            continue
        errors.extend(check_value(name, inputs[name], spec))

    for name in inputs:
        if name not in specs:
            warnings.append(f"Unexpected parameter '{name}' will be ignored")

    return ValidationResult(valid=not errors, errors=errors, warnings=warnings)


def check_value(name: str, value: Any, spec: ParameterSpec) -> list[str]:
    """Return every error for a single present value, in constraint order."""
    if not _type_matches(value, spec.type):
        return [f"Parameter '{name}' must be {_ARTICLES[spec.type]} {spec.type}"]

    if spec.type == "string":
        return _check_string(name, value, spec)
    if spec.type == "number":
        return _check_number(name, value, spec)
    if spec.type == "array":
        return _check_array(name, value, spec)
    if spec.type == "object":
        return _check_object(name, value, spec)
    return []


def prepare_inputs(inputs: dict[str, Any], specs: dict[str, ParameterSpec]) -> dict[str, Any]:
    """Build execution inputs: pass declared keys through, fill defaults, omit the rest."""
    prepared: dict[str, Any] = {}
    for name, spec in specs.items():
        if name in inputs:
            prepared[name] = inputs[name]
        elif spec.has_default:
            prepared[name] = spec.default
    return prepared


# ---------------------------------------------------------------------------
# Per-type checks
# ---------------------------------------------------------------------------


def _type_matches(value: Any, ptype: str) -> bool:
    if ptype == "string":
        return isinstance(value, str)
    if ptype == "number":
        # bool is an int subclass but never a number here
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if ptype == "boolean":
        return isinstance(value, bool)
    if ptype == "array":
        return isinstance(value, (list, tuple))
    if ptype == "object":
        return isinstance(value, dict)
    return False


def _check_string(name: str, value: str, spec: ParameterSpec) -> list[str]:
    errors = []
    if spec.min_length is not None and len(value) < spec.min_length:
        errors.append(f"Parameter '{name}' must be at least {spec.min_length} characters")
    if spec.max_length is not None and len(value) > spec.max_length:
        errors.append(f"Parameter '{name}' must be at most {spec.max_length} characters")
    if spec.pattern is not None and not _pattern_found(spec.pattern, value):
        errors.append(f"Parameter '{name}' does not match required pattern '{spec.pattern}'")
    if spec.enum is not None and value not in spec.enum:
        errors.append(f"Parameter '{name}' must be one of: {', '.join(str(e) for e in spec.enum)}")
    return errors


def _pattern_found(pattern: str, value: str) -> bool:
    try:
        return re.search(pattern, value) is not None
    except re.error:
        return False


def _check_number(name: str, value: float, spec: ParameterSpec) -> list[str]:
    errors = []
    if spec.minimum is not None and value < spec.minimum:
        errors.append(f"Parameter '{name}' must be at least {spec.minimum}")
    if spec.maximum is not None and value > spec.maximum:
        errors.append(f"Parameter '{name}' must be at most {spec.maximum}")
    return errors


def _check_array(name: str, value: list, spec: ParameterSpec) -> list[str]:
    errors = []
    if spec.min_items is not None and len(value) < spec.min_items:
        errors.append(f"Parameter '{name}' must have at least {spec.min_items} items")
    if spec.max_items is not None and len(value) > spec.max_items:
        errors.append(f"Parameter '{name}' must have at most {spec.max_items} items")
    if spec.items is not None:
        for i, item in enumerate(value):
            errors.extend(check_value(f"{name}[{i}]", item, spec.items))
    return errors


def _check_object(name: str, value: dict, spec: ParameterSpec) -> list[str]:
    if not spec.properties:
        return []
    errors = []
    for key, child in spec.properties.items():
        child_name = f"{name}.{key}"
        if key not in value:
            if child.required:
                errors.append(f"Required parameter '{child_name}' is missing")
            continue
        errors.extend(check_value(child_name, value[key], child))
    return errors
