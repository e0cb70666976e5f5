"""
Hierarchical Grouper - folds flat rows into campaign → ad group → ad trees.

Algorithm:
  1. Interpolate campaign_name_pattern per row; identical names merge
  2. Within each campaign, interpolate ad_group_name_pattern; identical names merge
  3. Each row yields exactly one ad from ad_mapping
  4. Missing / empty variables are collected as warnings, never raised

Usage:
    result = group_rows_into_campaigns(rows, GroupingConfig(
        campaign_name_pattern="{brand}-performance",
        ad_group_name_pattern="{product}",
        ad_mapping={"headline": "{headline}", "description": "{description}"},
    ))
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Set

from .errors import GroupingConfigError
from .logging_config import setup_logging
from .rendering import PatternRenderer
from .variable_engine import VariableEngine

logger = setup_logging(__name__)

REQUIRED_AD_FIELDS = ("headline", "description")
OPTIONAL_AD_FIELDS = ("display_url", "final_url", "call_to_action")

WARNING_MISSING_VARIABLE = "missing_variable"
WARNING_EMPTY_VALUE = "empty_value"


@dataclass
class GroupingConfig:
    campaign_name_pattern: str
    ad_group_name_pattern: str
    ad_mapping: Dict[str, str]          # headline, description required


@dataclass
class GroupedAd:
    headline: str
    description: str
    source_row: Dict[str, Any]
    display_url: Optional[str] = None
    final_url: Optional[str] = None
    call_to_action: Optional[str] = None


@dataclass
class GroupedAdGroup:
    name: str
    grouping_key: str
    source_rows: List[Dict[str, Any]] = field(default_factory=list)
    ads: List[GroupedAd] = field(default_factory=list)


@dataclass
class GroupedCampaign:
    name: str
    grouping_key: str
    source_rows: List[Dict[str, Any]] = field(default_factory=list)
    ad_groups: List[GroupedAdGroup] = field(default_factory=list)


@dataclass
class GroupingWarning:
    type: str                           # missing_variable | empty_value
    message: str
    row_index: Optional[int] = None
    variable_name: Optional[str] = None


@dataclass
class GroupingStats:
    total_rows: int = 0
    total_campaigns: int = 0
    total_ad_groups: int = 0
    total_ads: int = 0
    rows_with_missing_variables: int = 0


@dataclass
class GroupingResult:
    campaigns: List[GroupedCampaign]
    warnings: List[GroupingWarning]
    stats: GroupingStats


def _has_pattern(value: Any) -> bool:
    # "" is an acceptable (constant) pattern; None / non-strings are not
    return isinstance(value, str)


def validate_grouping_inputs(rows: Any, config: Any) -> None:
    """Raise GroupingConfigError before any row is touched."""
    if rows is None or not isinstance(rows, (list, tuple)):
        raise GroupingConfigError("rows must be a non-null list")
    if config is None or not isinstance(config, GroupingConfig):
        raise GroupingConfigError("config must be a GroupingConfig")
    if not _has_pattern(config.campaign_name_pattern):
        raise GroupingConfigError("config.campaign_name_pattern is required")
    if not _has_pattern(config.ad_group_name_pattern):
        raise GroupingConfigError("config.ad_group_name_pattern is required")
    if not isinstance(config.ad_mapping, Mapping):
        raise GroupingConfigError("config.ad_mapping is required")
    for name in REQUIRED_AD_FIELDS:
        if not _has_pattern(config.ad_mapping.get(name)):
            raise GroupingConfigError(f"config.ad_mapping.{name} is required")
    unknown = set(config.ad_mapping) - set(REQUIRED_AD_FIELDS) - set(OPTIONAL_AD_FIELDS)
    if unknown:
        raise GroupingConfigError(f"config.ad_mapping has unknown fields: {sorted(unknown)}")
    for i, row in enumerate(rows):
        if not isinstance(row, Mapping):
            raise GroupingConfigError(f"row {i} is not a mapping")


class HierarchicalGrouper:
    """Groups rows by interpolated campaign / ad group names."""

    def __init__(self, engine: Optional[VariableEngine] = None):
        self.renderer = PatternRenderer(engine)

    def _interpolate(
        self,
        pattern: str,
        row: Mapping[str, Any],
        row_index: int,
        warnings: List[GroupingWarning],
        rows_with_missing: Set[int],
    ) -> str:
        rendered = self.renderer.render(pattern, row)

        for w in rendered.missing:
            warnings.append(GroupingWarning(
                type=WARNING_MISSING_VARIABLE,
                message=w.message,
                row_index=row_index,
                variable_name=w.variable,
            ))
            rows_with_missing.add(row_index)

        for name in rendered.empty_variables:
            warnings.append(GroupingWarning(
                type=WARNING_EMPTY_VALUE,
                message=f'Variable "{name}" resolved to empty string',
                row_index=row_index,
                variable_name=name,
            ))

        return rendered.text

    def _create_ad(
        self,
        row: Dict[str, Any],
        row_index: int,
        ad_mapping: Mapping[str, str],
        warnings: List[GroupingWarning],
        rows_with_missing: Set[int],
    ) -> GroupedAd:
        ad = GroupedAd(
            headline=self._interpolate(ad_mapping["headline"], row, row_index, warnings, rows_with_missing),
            description=self._interpolate(ad_mapping["description"], row, row_index, warnings, rows_with_missing),
            source_row=row,
        )
        for name in OPTIONAL_AD_FIELDS:
            pattern = ad_mapping.get(name)
            if pattern:
                setattr(ad, name, self._interpolate(pattern, row, row_index, warnings, rows_with_missing))
        return ad

    def group_rows(self, rows: List[Dict[str, Any]], config: GroupingConfig) -> GroupingResult:
        """
        Group flat rows into a campaign hierarchy.

        Args:
            rows: Flat data rows (dicts)
            config: Name patterns and ad field mapping

        Returns:
            GroupingResult with campaigns in first-appearance order

        Raises:
            GroupingConfigError: rows or config are structurally invalid
        """
        validate_grouping_inputs(rows, config)

        warnings: List[GroupingWarning] = []
        rows_with_missing: Set[int] = set()

        # Step 1: campaign buckets (dicts keep first-appearance order)
        campaign_buckets: Dict[str, List[int]] = {}
        for index, row in enumerate(rows):
            key = self._interpolate(
                config.campaign_name_pattern, row, index, warnings, rows_with_missing
            )
            campaign_buckets.setdefault(key, []).append(index)

        # Step 2: ad group buckets per campaign, one ad per row
        campaigns: List[GroupedCampaign] = []
        total_ad_groups = 0
        total_ads = 0

        for campaign_key, indices in campaign_buckets.items():
            ad_group_buckets: Dict[str, List[int]] = {}
            for index in indices:
                key = self._interpolate(
                    config.ad_group_name_pattern, rows[index], index, warnings, rows_with_missing
                )
                ad_group_buckets.setdefault(key, []).append(index)

            ad_groups: List[GroupedAdGroup] = []
            for ad_group_key, group_indices in ad_group_buckets.items():
                ads = [
                    self._create_ad(rows[i], i, config.ad_mapping, warnings, rows_with_missing)
                    for i in group_indices
                ]
                ad_groups.append(GroupedAdGroup(
                    name=ad_group_key,
                    grouping_key=ad_group_key,
                    source_rows=[rows[i] for i in group_indices],
                    ads=ads,
                ))
                total_ads += len(ads)

            campaigns.append(GroupedCampaign(
                name=campaign_key,
                grouping_key=campaign_key,
                source_rows=[rows[i] for i in indices],
                ad_groups=ad_groups,
            ))
            total_ad_groups += len(ad_groups)

        stats = GroupingStats(
            total_rows=len(rows),
            total_campaigns=len(campaigns),
            total_ad_groups=total_ad_groups,
            total_ads=total_ads,
            rows_with_missing_variables=len(rows_with_missing),
        )
        logger.info(
            f"Grouped {stats.total_rows} rows into {stats.total_campaigns} campaigns, "
            f"{stats.total_ad_groups} ad groups, {stats.total_ads} ads"
        )
        return GroupingResult(campaigns=campaigns, warnings=warnings, stats=stats)


def group_rows_into_campaigns(rows: List[Dict[str, Any]], config: GroupingConfig) -> GroupingResult:
    """Functional wrapper around HierarchicalGrouper."""
    return HierarchicalGrouper().group_rows(rows, config)
