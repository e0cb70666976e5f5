"""
Variable Engine - parses and substitutes {variable} tokens in templates.

Syntax:
  {name}                  simple variable
  {{ / }}                 literal braces
  {name|uppercase}        filter (registered filter name)
  {date|format:YYYY-MM}   filter with ':'-separated arguments
  {sale_price|price}      fallback ('price' is not a filter name)
  {category.{lang}}       nested reference (inner token resolved first)

A suffix is a filter when its bare name is registered on this engine or
when it carries arguments; anything else is the (single) fallback field.

Substitution never raises: missing values and failing filters become
warnings, and the DoS guards (template length, distinct variable count)
return success=False with an error.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional, Union

from .errors import FilterError
from .filters import BUILTIN_FILTERS, FilterFunction
from .logging_config import setup_logging

logger = setup_logging(__name__)

# DoS prevention limits
MAX_TEMPLATE_LENGTH = 50_000
MAX_VARIABLES = 100
MAX_NESTING_DEPTH = 5

WARNING_MISSING = "missing"
WARNING_FILTER = "filter"

_INNER_TOKEN = re.compile(r"\{([^{}]+)\}")


@dataclass
class FilterSpec:
    name: str
    args: List[str] = field(default_factory=list)


@dataclass
class ExtractedVariable:
    name: str
    raw: str
    filters: List[FilterSpec] = field(default_factory=list)
    fallback: Optional[str] = None
    nested: bool = False


@dataclass
class SubstitutionWarning:
    variable: str
    message: str
    kind: str = WARNING_MISSING  # missing | filter


@dataclass
class SubstitutionError:
    variable: str
    message: str


@dataclass
class SubstitutionResult:
    text: str
    success: bool
    warnings: List[SubstitutionWarning] = field(default_factory=list)
    errors: List[SubstitutionError] = field(default_factory=list)

    @property
    def missing_variables(self) -> List[str]:
        return [w.variable for w in self.warnings if w.kind == WARNING_MISSING]


@dataclass
class ValidationResult:
    valid: bool
    missing_variables: List[str]


@dataclass
class SubstitutionDetail:
    variable: str
    original_value: str
    transformed_value: str
    filters: List[str]


@dataclass
class PreviewResult(SubstitutionResult):
    substitutions: List[SubstitutionDetail] = field(default_factory=list)


def value_to_string(value: Any) -> str:
    """Render a row value the way it appears in ad text."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _find_token_end(template: str, start: int) -> Optional[int]:
    """
    Index of the '}' closing the token opened at `start`, or None.
    One level of inner {...} is allowed (nested references).
    """
    depth = 0
    for j in range(start + 1, len(template)):
        ch = template[j]
        if ch == "{":
            if depth >= 1:
                return None
            depth += 1
        elif ch == "}":
            if depth == 0:
                return j
            depth -= 1
    return None


def scan_template(template: str) -> List[Union[str, "_RawToken"]]:
    """
    Single pass over the template producing literal strings and raw tokens.
    Doubled braces collapse to literal single braces.
    """
    segments: List[Union[str, _RawToken]] = []
    buf: List[str] = []
    i = 0
    n = len(template)

    while i < n:
        ch = template[i]
        if ch == "{":
            if template.startswith("{{", i):
                buf.append("{")
                i += 2
                continue
            end = _find_token_end(template, i)
            if end is None:
                buf.append(ch)
                i += 1
                continue
            raw = template[i:end + 1]
            content = raw[1:-1]
            if not content.split("|", 1)[0].strip():
                buf.append(raw)
                i = end + 1
                continue
            if buf:
                segments.append("".join(buf))
                buf = []
            segments.append(_RawToken(raw=raw, content=content))
            i = end + 1
        elif ch == "}" and template.startswith("}}", i):
            buf.append("}")
            i += 2
        else:
            buf.append(ch)
            i += 1

    if buf:
        segments.append("".join(buf))
    return segments


@dataclass(frozen=True)
class _RawToken:
    raw: str
    content: str

    @property
    def nested(self) -> bool:
        return "{" in self.content


class VariableEngine:
    """
    Template substitution engine.

    Each instance owns its filter registry; custom filters are passed at
    construction time (or added with register_filter) and never leak into
    other engines.
    """

    def __init__(self, filters: Optional[Mapping[str, FilterFunction]] = None):
        self._filters: Dict[str, FilterFunction] = dict(BUILTIN_FILTERS)
        self._builtin_names = frozenset(BUILTIN_FILTERS)
        if filters:
            for name, fn in filters.items():
                self.register_filter(name, fn)

    # ─────────────────────────────────────────────────────────
    # Filter registry
    # ─────────────────────────────────────────────────────────
    def register_filter(self, name: str, fn: FilterFunction) -> None:
        """Register a custom filter on this engine only."""
        self._filters[name] = fn

    def is_builtin_filter(self, name: str) -> bool:
        return name in self._builtin_names

    def is_filter(self, name: str) -> bool:
        return name in self._filters

    # ─────────────────────────────────────────────────────────
    # Parsing
    # ─────────────────────────────────────────────────────────
    def _parse_token(self, token: _RawToken) -> ExtractedVariable:
        if token.nested:
            return ExtractedVariable(name=token.content, raw=token.raw, nested=True)

        parts = token.content.split("|")
        variable = ExtractedVariable(name=parts[0].strip(), raw=token.raw)

        for part in parts[1:]:
            part = part.strip()
            if not part:
                continue
            pieces = part.split(":")
            filter_name, args = pieces[0], pieces[1:]
            if args or self.is_filter(filter_name):
                variable.filters.append(FilterSpec(name=filter_name, args=args))
            elif variable.fallback is None:
                variable.fallback = filter_name

        return variable

    def _tokens(self, template: str) -> List[Union[str, ExtractedVariable]]:
        return [
            seg if isinstance(seg, str) else self._parse_token(seg)
            for seg in scan_template(template)
        ]

    def extract_variables(self, template: str) -> List[ExtractedVariable]:
        """Variables in first-occurrence order, unique by name."""
        seen = set()
        variables: List[ExtractedVariable] = []
        for seg in self._tokens(template or ""):
            if isinstance(seg, ExtractedVariable) and seg.name not in seen:
                seen.add(seg.name)
                variables.append(seg)
        return variables

    def get_required_variables(self, template: str) -> List[str]:
        """Primary and fallback names, deduplicated, in order."""
        required: List[str] = []
        for variable in self.extract_variables(template):
            for name in (variable.name, variable.fallback):
                if name and name not in required:
                    required.append(name)
        return required

    # ─────────────────────────────────────────────────────────
    # Resolution
    # ─────────────────────────────────────────────────────────
    @staticmethod
    def _lookup(data: Mapping[str, Any], key: str) -> Any:
        # Direct key match only; "a.b" is a literal key, not a path
        return data.get(key)

    def _apply_filter(
        self,
        value: str,
        spec: FilterSpec,
        warnings: List[SubstitutionWarning],
    ) -> str:
        fn = self._filters.get(spec.name)
        if fn is None:
            warnings.append(SubstitutionWarning(
                variable=f"filter:{spec.name}",
                message=f'Unknown filter "{spec.name}" - value returned unchanged',
                kind=WARNING_FILTER,
            ))
            return value
        try:
            return str(fn(value, *spec.args))
        except Exception as e:  # custom filters may raise anything
            if not isinstance(e, FilterError):
                logger.debug(f"Filter {spec.name} raised {type(e).__name__}: {e}")
            warnings.append(SubstitutionWarning(
                variable=f"filter:{spec.name}",
                message=f'Filter "{spec.name}" failed: {e} - original value returned',
                kind=WARNING_FILTER,
            ))
            return value

    def _resolve_nested(
        self,
        variable: ExtractedVariable,
        data: Mapping[str, Any],
        warnings: List[SubstitutionWarning],
    ) -> str:
        content = variable.name
        iterations = 0
        while "{" in content and iterations < MAX_NESTING_DEPTH:
            m = _INNER_TOKEN.search(content)
            if not m:
                break
            inner_name = m.group(1).strip()
            value = self._lookup(data, inner_name)
            if value is None:
                warnings.append(SubstitutionWarning(
                    variable=inner_name,
                    message=f'Variable "{inner_name}" is missing from data',
                ))
                return ""
            content = content[:m.start()] + value_to_string(value) + content[m.end():]
            iterations += 1

        final_value = self._lookup(data, content)
        if final_value is None:
            warnings.append(SubstitutionWarning(
                variable=content,
                message=f'Variable "{content}" is missing from data',
            ))
            return ""
        return value_to_string(final_value)

    def _resolve_value(
        self,
        variable: ExtractedVariable,
        data: Mapping[str, Any],
        warnings: List[SubstitutionWarning],
    ) -> str:
        """Primary value, then fallback, then '' with a missing warning."""
        value = self._lookup(data, variable.name)
        if value is None:
            if variable.fallback:
                value = self._lookup(data, variable.fallback)
                if value is None:
                    warnings.append(SubstitutionWarning(
                        variable=variable.name,
                        message=(
                            f'Variable "{variable.name}" is missing and fallback '
                            f'"{variable.fallback}" is also missing'
                        ),
                    ))
            else:
                warnings.append(SubstitutionWarning(
                    variable=variable.name,
                    message=f'Variable "{variable.name}" is missing from data',
                ))
        return value_to_string(value)

    def _check_limits(
        self,
        template: str,
        errors: List[SubstitutionError],
    ) -> Optional[List[Union[str, ExtractedVariable]]]:
        if len(template) > MAX_TEMPLATE_LENGTH:
            errors.append(SubstitutionError(
                variable="_template",
                message=f"Template exceeds maximum length of {MAX_TEMPLATE_LENGTH} characters",
            ))
            logger.warning(f"Template rejected: {len(template)} characters")
            return None

        tokens = self._tokens(template)
        distinct = {seg.name for seg in tokens if isinstance(seg, ExtractedVariable)}
        if len(distinct) > MAX_VARIABLES:
            errors.append(SubstitutionError(
                variable="_template",
                message=f"Template exceeds maximum variable count of {MAX_VARIABLES}",
            ))
            logger.warning(f"Template rejected: {len(distinct)} distinct variables")
            return None
        return tokens

    def _render(
        self,
        template: str,
        data: Mapping[str, Any],
        details: Optional[List[SubstitutionDetail]] = None,
    ) -> SubstitutionResult:
        warnings: List[SubstitutionWarning] = []
        errors: List[SubstitutionError] = []

        if not template:
            return SubstitutionResult(text="", success=True)

        tokens = self._check_limits(template, errors)
        if tokens is None:
            return SubstitutionResult(text=template, success=False, warnings=warnings, errors=errors)

        resolved: Dict[str, str] = {}
        parts: List[str] = []
        for seg in tokens:
            if isinstance(seg, str):
                parts.append(seg)
                continue
            if seg.raw not in resolved:
                if seg.nested:
                    resolved[seg.raw] = self._resolve_nested(seg, data, warnings)
                else:
                    original = self._resolve_value(seg, data, warnings)
                    text = original
                    for spec in seg.filters:
                        text = self._apply_filter(text, spec, warnings)
                    resolved[seg.raw] = text
                    if details is not None:
                        details.append(SubstitutionDetail(
                            variable=seg.name,
                            original_value=value_to_string(self._lookup(data, seg.name)),
                            transformed_value=text,
                            filters=[f.name for f in seg.filters],
                        ))
            parts.append(resolved[seg.raw])

        return SubstitutionResult(
            text="".join(parts),
            success=not errors,
            warnings=warnings,
            errors=errors,
        )

    # ─────────────────────────────────────────────────────────
    # Public API
    # ─────────────────────────────────────────────────────────
    def substitute(self, template: str, data: Mapping[str, Any]) -> SubstitutionResult:
        """Substitute variables in a template with data values."""
        return self._render(template, data)

    def preview_substitution(self, template: str, data: Mapping[str, Any]) -> PreviewResult:
        """Substitute and report each variable's original and filtered value."""
        details: List[SubstitutionDetail] = []
        result = self._render(template, data, details)
        return PreviewResult(
            text=result.text,
            success=result.success,
            warnings=result.warnings,
            errors=result.errors,
            substitutions=details,
        )

    def validate(self, template: str, data: Mapping[str, Any]) -> ValidationResult:
        """Report variables that are absent and have no present fallback."""
        missing: List[str] = []
        for variable in self.extract_variables(template):
            if variable.nested:
                continue
            if self._lookup(data, variable.name) is not None:
                continue
            if variable.fallback and self._lookup(data, variable.fallback) is not None:
                continue
            missing.append(variable.name)
        return ValidationResult(valid=not missing, missing_variables=missing)
