"""
Generation Orchestrator - template + rows + rules -> campaign hierarchy.

Flow (generate):
  1. Resolve a unique id per row (synthesized / disambiguated as needed)
  2. Run the Rule Engine over every row; skipped rows stop here
  3. Interpolate the template per surviving row (rule overrides as extra context)
  4. Optional: inline [[...]] variations, ad / campaign deduplication
  5. Attach groups / tags / targeting by source_row_id
  6. Optional: platform field-length validation

Per-row problems are recorded as warnings and counters; a batch never aborts.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple

from .grouper import GroupingConfig, GroupingResult, HierarchicalGrouper, validate_grouping_inputs
from .logging_config import setup_logging
from .models import (
    AdGroupTemplate,
    AdTemplate,
    CampaignTemplate,
    GeneratedAd,
    GeneratedAdGroup,
    GeneratedCampaign,
    ValidationWarning,
    generate_id,
    row_id,
)
from .platform_limits import check_all_field_lengths
from .rendering import PatternRenderer, format_warning, merge_context
from .rules import RowEffects, Rule, RuleEngine
from .variable_engine import VariableEngine
from .variations import InlineVariationGenerator, VariationConfig

logger = setup_logging(__name__)

DEFAULT_PREVIEW_LIMIT = 20
DEFAULT_AD_GROUP_NAME = "Ad Group"
AD_DEDUP_SEPARATOR = "|||"


# ─────────────────────────────────────────────────────────────
# Inputs / outputs
# ─────────────────────────────────────────────────────────────
@dataclass
class GenerationInput:
    template: CampaignTemplate
    data_rows: List[Dict[str, Any]]
    rules: List[Rule] = field(default_factory=list)


@dataclass
class GenerationOptions:
    validate_platform_limits: bool = False
    deduplicate_campaigns: bool = False
    deduplicate_ads: bool = False       # headline + description, across the batch
    inline_variations: bool = False
    variation_config: Optional[VariationConfig] = None


@dataclass
class GenerationStatistics:
    total_campaigns: int = 0
    total_ad_groups: int = 0
    total_ads: int = 0
    rows_processed: int = 0
    rows_skipped: int = 0
    rules_applied: int = 0              # distinct rules that matched at least one row
    duplicate_ads_removed: int = 0
    duplicate_campaigns_removed: int = 0


@dataclass
class GenerationOutput:
    campaigns: List[GeneratedCampaign]
    warnings: List[str]
    validation_warnings: List[ValidationWarning]
    statistics: GenerationStatistics

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PreviewOutput:
    preview: List[GeneratedCampaign]
    warnings: List[str]
    validation_warnings: List[ValidationWarning]
    statistics: GenerationStatistics    # always the full input, never truncated

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class EstimatedCounts:
    estimated_campaigns: int
    estimated_ad_groups: int
    estimated_ads: int
    rows_to_be_skipped: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class GroupedGenerationOutput:
    """generate_grouped(): rules first, then many-rows-per-campaign grouping."""
    result: GroupingResult
    row_effects: Dict[str, RowEffects]  # keyed by row id
    rows_processed: int
    rows_skipped: int
    rules_applied: int
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class _RuleRun:
    """Rule outcome for the whole batch, keyed by row id."""
    row_ids: List[str]
    effects: Dict[str, RowEffects]
    active: List[Tuple[str, Dict[str, Any]]]
    rows_skipped: int
    rules_applied: int
    warnings: List[str]


class _BatchState:
    """Accumulators shared across rows within one generation call."""

    def __init__(self) -> None:
        self.warnings: List[str] = []
        self.validation_warnings: List[ValidationWarning] = []
        self.seen_ads: Set[str] = set()
        self.duplicate_ads_removed = 0


class GenerationOrchestrator:
    """
    Drives one-campaign-per-row generation.

    Components are injectable so callers can share a VariableEngine with
    custom filters across generation and grouping.
    """

    def __init__(
        self,
        engine: Optional[VariableEngine] = None,
        rule_engine: Optional[RuleEngine] = None,
    ):
        self.engine = engine or VariableEngine()
        self.rule_engine = rule_engine or RuleEngine()
        self.renderer = PatternRenderer(self.engine)
        self.variation_generator = InlineVariationGenerator(self.engine)
        self.grouper = HierarchicalGrouper(self.engine)

    # ─────────────────────────────────────────────────────────
    # Rows and rules
    # ─────────────────────────────────────────────────────────
    @staticmethod
    def _assign_row_ids(rows: List[Dict[str, Any]]) -> Tuple[List[str], List[str]]:
        """One unique id per row; repeated ids get a '#n' suffix and a warning."""
        ids: List[str] = []
        warnings: List[str] = []
        seen: Set[str] = set()
        for row in rows:
            rid = row_id(row)
            if rid in seen:
                n = 2
                while f"{rid}#{n}" in seen:
                    n += 1
                renamed = f"{rid}#{n}"
                warnings.append(f'Duplicate row id "{rid}" - using "{renamed}" for this row')
                logger.warning(f"Duplicate row id {rid} renamed to {renamed}")
                rid = renamed
            seen.add(rid)
            ids.append(rid)
        return ids, warnings

    def _run_rules(self, rows: List[Dict[str, Any]], rules: List[Rule]) -> _RuleRun:
        row_ids, warnings = self._assign_row_ids(rows)
        results = self.rule_engine.process_dataset(rules, rows)

        effects: Dict[str, RowEffects] = {}
        active: List[Tuple[str, Dict[str, Any]]] = []
        applied: Set[str] = set()
        skipped = 0

        for rid, row, row_effects in zip(row_ids, rows, results):
            effects[rid] = row_effects
            applied.update(row_effects.matched_rule_ids)
            for err in row_effects.errors:
                warnings.append(f"Row {rid}: {err}")
            if row_effects.skipped:
                skipped += 1
                continue
            active.append((rid, row))

        return _RuleRun(
            row_ids=row_ids,
            effects=effects,
            active=active,
            rows_skipped=skipped,
            rules_applied=len(applied),
            warnings=warnings,
        )

    # ─────────────────────────────────────────────────────────
    # Interpolation
    # ─────────────────────────────────────────────────────────
    def _render(self, label: str, pattern: Optional[str], context: Mapping[str, Any], state: _BatchState) -> str:
        rendered = self.renderer.render(pattern, context)
        for w in rendered.warnings:
            state.warnings.append(format_warning(label, w))
        for err in rendered.errors:
            state.warnings.append(f"{label}: {err}")
        return rendered.text

    def _is_duplicate_ad(self, ad: GeneratedAd, state: _BatchState) -> bool:
        key = f"{ad.headline}{AD_DEDUP_SEPARATOR}{ad.description}"
        if key in state.seen_ads:
            state.duplicate_ads_removed += 1
            return True
        state.seen_ads.add(key)
        return False

    def _build_ads(
        self,
        ad_template: AdTemplate,
        context: Mapping[str, Any],
        rid: str,
        options: GenerationOptions,
        state: _BatchState,
    ) -> List[GeneratedAd]:
        if options.inline_variations:
            result = self.variation_generator.generate_variations(
                ad_template, context, options.variation_config, data_row_id=rid
            )
            state.warnings.extend(result.warnings)
            return [
                GeneratedAd(
                    id=generate_id(),
                    template_id=ad_template.id,
                    source_row_id=rid,
                    headline=v.content.get("headline", ""),
                    description=v.content.get("description", ""),
                    display_url=v.content.get("display_url"),
                    final_url=v.content.get("final_url"),
                    call_to_action=v.content.get("call_to_action"),
                    variation_index=v.metadata.variation_index,
                    warnings=list(result.warnings),
                )
                for v in result.variations
            ]

        ad_warnings_start = len(state.warnings)
        ad = GeneratedAd(
            id=generate_id(),
            template_id=ad_template.id,
            source_row_id=rid,
            headline=self._render("headline", ad_template.headline, context, state),
            description=self._render("description", ad_template.description, context, state),
        )
        for name in ("display_url", "final_url", "call_to_action"):
            pattern = getattr(ad_template, name)
            if pattern is not None:
                setattr(ad, name, self._render(name, pattern, context, state))
        ad.warnings = state.warnings[ad_warnings_start:]
        return [ad]

    def _build_ad_group(
        self,
        ag_template: AdGroupTemplate,
        context: Mapping[str, Any],
        rid: str,
        options: GenerationOptions,
        state: _BatchState,
    ) -> GeneratedAdGroup:
        name = DEFAULT_AD_GROUP_NAME
        if ag_template.name:
            name = self._render("Ad group name", ag_template.name, context, state)

        ads: List[GeneratedAd] = []
        for ad_template in ag_template.ad_templates:
            for ad in self._build_ads(ad_template, context, rid, options, state):
                if options.deduplicate_ads and self._is_duplicate_ad(ad, state):
                    continue
                ads.append(ad)

        targeting = None
        if ag_template.targeting is not None:
            targeting = self.renderer.render_object(ag_template.targeting, context)

        return GeneratedAdGroup(
            id=generate_id(),
            template_id=ag_template.id,
            name=name,
            ads=ads,
            targeting=targeting,
            bid_strategy=ag_template.bid_strategy,
            bid_amount=ag_template.bid_amount,
        )

    def _build_campaign(
        self,
        template: CampaignTemplate,
        row: Mapping[str, Any],
        rid: str,
        effects: RowEffects,
        options: GenerationOptions,
        state: _BatchState,
    ) -> GeneratedCampaign:
        context = merge_context(row, effects.field_overrides)
        targeting = None
        if template.targeting is not None:
            targeting = self.renderer.render_object(template.targeting, context)

        return GeneratedCampaign(
            id=generate_id(),
            template_id=template.id,
            source_row_id=rid,
            name=self._render("Campaign name", template.name, context, state),
            platform=template.platform,
            objective=template.objective,
            budget=template.budget,
            targeting=targeting,
            ad_groups=[
                self._build_ad_group(ag, context, rid, options, state)
                for ag in template.ad_group_templates
            ],
        )

    # ─────────────────────────────────────────────────────────
    # Post-processing
    # ─────────────────────────────────────────────────────────
    @staticmethod
    def _attach_metadata(campaigns: List[GeneratedCampaign], effects: Mapping[str, RowEffects]) -> None:
        """Groups / tags / targeting looked up by source_row_id, never by position."""
        for campaign in campaigns:
            row_effects = effects.get(campaign.source_row_id)
            if row_effects is None:
                continue
            campaign.groups = list(row_effects.groups)
            campaign.tags = list(row_effects.tags)
            if row_effects.targeting:
                merged = dict(campaign.targeting or {})
                merged.update(row_effects.targeting)
                campaign.targeting = merged

    @staticmethod
    def _validate_limits(campaign: GeneratedCampaign, state: _BatchState) -> None:
        for ad_group in campaign.ad_groups:
            for ad in ad_group.ads:
                check = check_all_field_lengths(ad.fields(), campaign.platform)
                for name in check.invalid_fields:
                    result = check.fields[name]
                    state.validation_warnings.append(ValidationWarning(
                        campaign_id=campaign.id,
                        ad_group_id=ad_group.id,
                        ad_id=ad.id,
                        field=name,
                        message=(
                            f"{name} exceeds maximum length of {result.limit} characters "
                            f"for {campaign.platform} ({result.length})"
                        ),
                        limit=result.limit,
                        actual=result.length,
                    ))

    # ─────────────────────────────────────────────────────────
    # Public API
    # ─────────────────────────────────────────────────────────
    def generate(
        self,
        job: GenerationInput,
        options: Optional[GenerationOptions] = None,
    ) -> GenerationOutput:
        """
        Generate one campaign per surviving row.

        Args:
            job: Template, data rows and rules
            options: Validation / dedup / inline-variation switches

        Returns:
            GenerationOutput with campaigns in row order
        """
        options = options or GenerationOptions()
        template = job.template
        rows = list(job.data_rows)
        logger.info(f"Generating from template {template.id}: {len(rows)} rows, {len(job.rules)} rules")

        run = self._run_rules(rows, job.rules)
        state = _BatchState()
        state.warnings.extend(run.warnings)

        campaigns: List[GeneratedCampaign] = []
        seen_campaigns: Set[tuple] = set()
        duplicate_campaigns = 0

        for rid, row in run.active:
            campaign = self._build_campaign(template, row, rid, run.effects[rid], options, state)
            if options.deduplicate_campaigns:
                key = campaign.content_key()
                if key in seen_campaigns:
                    duplicate_campaigns += 1
                    logger.debug(f"Row {rid}: duplicate campaign dropped")
                    continue
                seen_campaigns.add(key)
            campaigns.append(campaign)

        self._attach_metadata(campaigns, run.effects)

        if options.validate_platform_limits:
            for campaign in campaigns:
                self._validate_limits(campaign, state)

        statistics = GenerationStatistics(
            total_campaigns=len(campaigns),
            total_ad_groups=sum(len(c.ad_groups) for c in campaigns),
            total_ads=sum(c.total_ads for c in campaigns),
            rows_processed=len(rows),
            rows_skipped=run.rows_skipped,
            rules_applied=run.rules_applied,
            duplicate_ads_removed=state.duplicate_ads_removed,
            duplicate_campaigns_removed=duplicate_campaigns,
        )
        logger.info(
            f"Generated {statistics.total_campaigns} campaigns, {statistics.total_ad_groups} ad groups, "
            f"{statistics.total_ads} ads ({statistics.rows_skipped} rows skipped, "
            f"{len(state.warnings)} warnings)"
        )
        return GenerationOutput(
            campaigns=campaigns,
            warnings=state.warnings,
            validation_warnings=state.validation_warnings,
            statistics=statistics,
        )

    def preview(
        self,
        job: GenerationInput,
        limit: Optional[int] = None,
        options: Optional[GenerationOptions] = None,
    ) -> PreviewOutput:
        """First `limit` campaigns; statistics cover the whole input."""
        if limit is None:
            limit = DEFAULT_PREVIEW_LIMIT
        if limit < 0:
            raise ValueError("preview limit must be >= 0")

        full = self.generate(job, options)
        return PreviewOutput(
            preview=full.campaigns[:limit],
            warnings=full.warnings,
            validation_warnings=full.validation_warnings,
            statistics=full.statistics,
        )

    def estimate_counts(self, job: GenerationInput) -> EstimatedCounts:
        """Skip decisions only; no interpolation."""
        skipped = sum(1 for row in job.data_rows if self.rule_engine.will_skip(job.rules, row))
        active = len(job.data_rows) - skipped
        return EstimatedCounts(
            estimated_campaigns=active,
            estimated_ad_groups=active * job.template.ad_groups_per_campaign,
            estimated_ads=active * job.template.ads_per_campaign,
            rows_to_be_skipped=skipped,
        )

    def generate_grouped(
        self,
        rows: List[Dict[str, Any]],
        rules: List[Rule],
        config: GroupingConfig,
    ) -> GroupedGenerationOutput:
        """
        Rules, then hierarchical grouping of the surviving rows.

        Each surviving row is grouped with its rule overrides applied and its
        resolved id stored under 'id', so source rows map back to row_effects.

        Raises:
            GroupingConfigError: invalid grouping config
        """
        validate_grouping_inputs(rows, config)
        run = self._run_rules(list(rows), rules)
        effective_rows = []
        for rid, row in run.active:
            context = merge_context(row, run.effects[rid].field_overrides)
            context["id"] = rid
            effective_rows.append(context)

        result = self.grouper.group_rows(effective_rows, config)
        return GroupedGenerationOutput(
            result=result,
            row_effects=run.effects,
            rows_processed=len(run.row_ids),
            rows_skipped=run.rows_skipped,
            rules_applied=run.rules_applied,
            warnings=run.warnings,
        )
