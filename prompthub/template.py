"""Template engine for prompt templates.

Supports ``{{name}}`` substitution, dependency references
(``{{module "id"}}`` or ``{{id}}``), helpers (``{{uppercase name}}``),
``{{#if name}}...{{/if}}`` blocks and ``{{#each name}}...{{/each}}`` loops.
Anything that cannot be resolved is left in the output verbatim.
"""

from __future__ import annotations

import html
import json
import logging
import math
import re
from typing import Any, Callable, Protocol

from prompthub.config import MAX_TEMPLATE_LENGTH
from prompthub.errors import ErrorCode, PromptHubError
from prompthub.models import ValidationResult

logger = logging.getLogger(__name__)

_VARIABLE = re.compile(r"\{\{(\w+)\}\}")
_MODULE_REF = re.compile(r'\{\{module\s+"([^"]+)"([^}]*)\}\}')
_HELPER_CALL = re.compile(r"\{\{(\w+)\s+(\w+)\}\}")
_IF_BLOCK = re.compile(r"\{\{#if\s+(\w+)\}\}(.*?)\{\{/if\}\}", re.DOTALL)
_EACH_BLOCK = re.compile(r"\{\{#each\s+(\w+)\}\}(.*?)\{\{/each\}\}", re.DOTALL)

BLOCK_KEYWORDS = ("if", "each", "unless", "module")


class TemplateRenderer(Protocol):
    def render(self, template: str, variables: dict[str, Any], dependencies: dict[str, Any] | None = None) -> str: ...


def stringify(value: Any) -> str:
    return value if isinstance(value, str) else json.dumps(value, default=str)


def is_truthy(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (list, tuple, dict, str)):
        return len(value) > 0
    return bool(value)


class TemplateEngine:
    """Default renderer with a registry of single-argument helpers."""

    def __init__(self, max_length: int = MAX_TEMPLATE_LENGTH):
        self.max_length = max_length
        self._helpers: dict[str, Callable[[Any], Any]] = {}
        self._register_default_helpers()

    def register_helper(self, name: str, fn: Callable[[Any], Any]):
        self._helpers[name] = fn

    def helper_names(self) -> list[str]:
        return list(self._helpers)

    def render(self, template: str, variables: dict[str, Any], dependencies: dict[str, Any] | None = None) -> str:
        dependencies = dependencies or {}
        try:
            rendered = self._replace_variables(template, variables, dependencies)
            rendered = self._replace_module_refs(rendered, dependencies)
            rendered = self._process_helpers(rendered, variables)
            rendered = self._process_conditionals(rendered, variables)
            rendered = self._process_loops(rendered, variables)
        except Exception as e:
            raise PromptHubError(ErrorCode.EXECUTION_FAILED, "Template rendering failed", str(e)) from e
        return rendered

    def extract_variables(self, template: str) -> list[str]:
        """Names referenced by the template, in first-seen order."""
        names: dict[str, None] = {}
        for m in _VARIABLE.finditer(template):
            names.setdefault(m.group(1))
        for m in _HELPER_CALL.finditer(template):
            if m.group(1) not in BLOCK_KEYWORDS:
                names.setdefault(m.group(2))
        for m in _IF_BLOCK.finditer(template):
            names.setdefault(m.group(1))
        for m in _EACH_BLOCK.finditer(template):
            names.setdefault(m.group(1))
        names.pop("this", None)
        return list(names)

    def validate_template(self, template: str) -> ValidationResult:
        errors = []
        if len(template) > self.max_length:
            errors.append(f"Template exceeds maximum length of {self.max_length} characters")
        if template.count("{{") != template.count("}}"):
            errors.append("Unbalanced template braces")
        if len(re.findall(r"\{\{#if", template)) != template.count("{{/if}}"):
            errors.append("Unbalanced if/endif blocks")
        if len(re.findall(r"\{\{#each", template)) != template.count("{{/each}}"):
            errors.append("Unbalanced each/endeach blocks")
        for m in re.finditer(r"\{\{(\w+)\s+", template):
            name = m.group(1)
            if name not in BLOCK_KEYWORDS and name not in self._helpers:
                errors.append(f"Unknown helper: {name}")
        return ValidationResult(valid=not errors, errors=errors)

    # -- stages --------------------------------------------------------------

    def _replace_variables(self, template: str, variables: dict, dependencies: dict) -> str:
        def sub(m: re.Match) -> str:
            name = m.group(1)
            if name in variables:
                return stringify(variables[name])
            if name in dependencies:
                return stringify(dependencies[name])
            return m.group(0)

        return _VARIABLE.sub(sub, template)

    def _replace_module_refs(self, template: str, dependencies: dict) -> str:
        def sub(m: re.Match) -> str:
            module_id = m.group(1)
            if module_id in dependencies:
                return stringify(dependencies[module_id])
            return m.group(0)

        return _MODULE_REF.sub(sub, template)

    def _process_helpers(self, template: str, variables: dict) -> str:
        def sub(m: re.Match) -> str:
            helper_name, var_name = m.group(1), m.group(2)
            fn = self._helpers.get(helper_name)
            if fn is None or var_name not in variables:
                return m.group(0)
            try:
                return stringify(fn(variables[var_name]))
            except Exception as e:
                logger.warning(f"Helper {helper_name} failed on '{var_name}': {e}")
                return m.group(0)

        return _HELPER_CALL.sub(sub, template)

    def _process_conditionals(self, template: str, variables: dict) -> str:
        return _IF_BLOCK.sub(lambda m: m.group(2) if is_truthy(variables.get(m.group(1))) else "", template)

    def _process_loops(self, template: str, variables: dict) -> str:
        def sub(m: re.Match) -> str:
            items = variables.get(m.group(1))
            if not isinstance(items, (list, tuple)):
                return ""
            body = m.group(2)
            return "".join(
                body.replace("{{this}}", stringify(item)).replace("{{@index}}", str(i))
                for i, item in enumerate(items)
            )

        return _EACH_BLOCK.sub(sub, template)

    def _register_default_helpers(self):
        # Strings
        self.register_helper("uppercase", lambda s: s.upper())
        self.register_helper("lowercase", lambda s: s.lower())
        self.register_helper("capitalize", lambda s: s[:1].upper() + s[1:].lower())
        self.register_helper("trim", lambda s: s.strip())
        self.register_helper("escape", lambda s: html.escape(s, quote=True))
        # Numbers
        self.register_helper("round", lambda n: round(n))
        self.register_helper("floor", lambda n: math.floor(n))
        self.register_helper("ceil", lambda n: math.ceil(n))
        # JSON
        self.register_helper("json", lambda v: json.dumps(v, indent=2, default=str))
        self.register_helper("jsonCompact", lambda v: json.dumps(v, separators=(",", ":"), default=str))
        # Arrays
        self.register_helper("length", lambda a: len(a))
        self.register_helper("first", lambda a: a[0])
        self.register_helper("last", lambda a: a[-1])
        self.register_helper("join", lambda a: ", ".join(stringify(x) for x in a))
