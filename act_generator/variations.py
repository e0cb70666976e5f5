"""
Inline Variation Generator - expands [[a|b|c]] groups in ad fields.

Steps:
  1. Substitute {variables} in every ad field
  2. Split each field on its [[...]] groups (non-nested; inner brackets are literal)
  3. Cartesian product across all groups of all fields, in field order
  4. Deduplicate (all fields, or `deduplicate_by`), first occurrence kept
  5. Truncate to max_variations
"""
from __future__ import annotations

import itertools
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .logging_config import setup_logging
from .models import AdTemplate, generate_id, row_id
from .rendering import PatternRenderer, format_warning
from .variable_engine import VariableEngine

logger = setup_logging(__name__)

# [[...]] with no brackets inside; [[]] is an empty group
VARIATION_PATTERN = re.compile(r"\[\[([^\[\]]*)\]\]")

DEDUP_SEPARATOR = "|||"


@dataclass
class VariationConfig:
    max_variations: Optional[int] = None
    deduplicate_by: Optional[List[str]] = None  # default: every field


@dataclass
class VariationMetadata:
    data_row_id: str
    variation_index: int
    is_original: bool


@dataclass
class GeneratedVariation:
    id: str
    content: Dict[str, str]
    metadata: VariationMetadata


@dataclass
class VariationResult:
    variations: List[GeneratedVariation]
    total_possible_variations: int
    duplicates_removed: int
    was_limited: bool
    warnings: List[str] = field(default_factory=list)


def extract_field_options(value: str) -> List[str]:
    """Every rendering of one field value, in deterministic order."""
    if not value:
        return [""]

    blocks = list(VARIATION_PATTERN.finditer(value))
    if not blocks:
        return [value]

    literals: List[str] = []
    choices: List[List[str]] = []
    pos = 0
    for m in blocks:
        literals.append(value[pos:m.start()])
        choices.append([opt.strip() for opt in m.group(1).split("|")])
        pos = m.end()
    tail = value[pos:]

    options: List[str] = []
    for combo in itertools.product(*choices):
        parts = []
        for literal, choice in zip(literals, combo):
            parts.append(literal)
            parts.append(choice)
        parts.append(tail)
        options.append("".join(parts))
    return options


def _dedup_key(content: Mapping[str, str], deduplicate_by: Optional[Sequence[str]]) -> str:
    names = deduplicate_by if deduplicate_by else list(content)
    return DEDUP_SEPARATOR.join(content.get(name) or "" for name in names)


class InlineVariationGenerator:
    """Generates ad variations from one ad template and one data row."""

    def __init__(self, engine: Optional[VariableEngine] = None):
        self.renderer = PatternRenderer(engine)

    def generate_variations(
        self,
        template: AdTemplate,
        data_row: Mapping[str, Any],
        config: Optional[VariationConfig] = None,
        data_row_id: Optional[str] = None,
    ) -> VariationResult:
        """
        Expand every [[...]] group of the template's fields.

        Args:
            template: Ad template whose fields may contain {vars} and [[a|b]] groups
            data_row: Row supplying variable values
            config: max_variations / deduplicate_by
            data_row_id: Id to stamp on variations (defaults to the row's id)

        Returns:
            VariationResult; total_possible_variations is the raw pre-dedup count

        Raises:
            TypeError: max_variations is not an int
            ValueError: max_variations is negative
        """
        config = config or VariationConfig()
        if config.max_variations is not None:
            if isinstance(config.max_variations, bool) or not isinstance(config.max_variations, int):
                raise TypeError("max_variations must be an int")
            if config.max_variations < 0:
                raise ValueError("max_variations must be >= 0")

        warnings: List[str] = []
        source_id = data_row_id or row_id(data_row)

        # Step 1: variables first, so [[...]] holds literal choices only
        substituted: Dict[str, str] = {}
        for name, pattern in template.patterns().items():
            rendered = self.renderer.render(pattern, data_row)
            for w in rendered.warnings:
                warnings.append(format_warning(name, w))
            for err in rendered.errors:
                warnings.append(f"{name}: {err}")
            substituted[name] = rendered.text

        # Step 2-3: per-field options, then product across fields
        names = list(substituted)
        per_field = [extract_field_options(substituted[n]) for n in names]
        total_possible = 1
        for options in per_field:
            total_possible *= len(options)

        # Step 4: dedup, first occurrence wins
        seen = set()
        unique: List[Dict[str, str]] = []
        for combo in itertools.product(*per_field):
            content = dict(zip(names, combo))
            key = _dedup_key(content, config.deduplicate_by)
            if key in seen:
                continue
            seen.add(key)
            unique.append(content)
        duplicates_removed = total_possible - len(unique)

        # Step 5: cap
        limit = config.max_variations
        was_limited = limit is not None and len(unique) > limit
        if was_limited:
            unique = unique[:limit]

        variations = [
            GeneratedVariation(
                id=generate_id(),
                content=content,
                metadata=VariationMetadata(
                    data_row_id=source_id,
                    variation_index=index,
                    is_original=index == 0,
                ),
            )
            for index, content in enumerate(unique)
        ]
        logger.debug(
            f"Row {source_id}: {total_possible} combinations, "
            f"{duplicates_removed} duplicates, {len(variations)} kept"
        )
        return VariationResult(
            variations=variations,
            total_possible_variations=total_possible,
            duplicates_removed=duplicates_removed,
            was_limited=was_limited,
            warnings=warnings,
        )
