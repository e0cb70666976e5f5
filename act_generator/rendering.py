"""
Pattern rendering shared by the orchestrator and the hierarchical grouper.

Both strategies interpolate name patterns and ad fields against a row and
turn Variable Engine warnings into their own warning shapes; this module
is the single place where that happens.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from .variable_engine import (
    WARNING_MISSING,
    SubstitutionResult,
    SubstitutionWarning,
    VariableEngine,
)


@dataclass
class RenderedField:
    text: str
    missing: List[SubstitutionWarning] = field(default_factory=list)
    filter_warnings: List[SubstitutionWarning] = field(default_factory=list)
    empty_variables: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def warnings(self) -> List[SubstitutionWarning]:
        return self.missing + self.filter_warnings


class PatternRenderer:
    """Thin wrapper around a VariableEngine that classifies its warnings."""

    def __init__(self, engine: Optional[VariableEngine] = None):
        self.engine = engine or VariableEngine()

    def render(self, pattern: Optional[str], data: Mapping[str, Any]) -> RenderedField:
        if not pattern:
            return RenderedField(text="")

        result: SubstitutionResult = self.engine.substitute(pattern, data)
        rendered = RenderedField(text=result.text)
        for w in result.warnings:
            if w.kind == WARNING_MISSING:
                rendered.missing.append(w)
            else:
                rendered.filter_warnings.append(w)
        rendered.errors = [e.message for e in result.errors]

        # A pattern that rendered to nothing: name the variables present but blank
        if result.text == "":
            missing_names = {w.variable for w in rendered.missing}
            for variable in self.engine.extract_variables(pattern):
                if variable.nested or variable.name in missing_names:
                    continue
                if data.get(variable.name) == "":
                    rendered.empty_variables.append(variable.name)
        return rendered

    def render_object(self, obj: Any, data: Mapping[str, Any]) -> Any:
        """Substitute strings inside nested dicts/lists (targeting blocks)."""
        if isinstance(obj, str):
            return self.engine.substitute(obj, data).text
        if isinstance(obj, dict):
            return {k: self.render_object(v, data) for k, v in obj.items()}
        if isinstance(obj, list):
            return [self.render_object(v, data) for v in obj]
        return obj


def format_warning(label: str, warning: SubstitutionWarning) -> str:
    """'headline: product - Variable "product" is missing from data'"""
    return f"{label}: {warning.variable} - {warning.message}"


def merge_context(row: Mapping[str, Any], overrides: Mapping[str, Any]) -> Dict[str, Any]:
    """Row values with rule field overrides layered on top."""
    context = dict(row)
    context.update(overrides)
    return context
