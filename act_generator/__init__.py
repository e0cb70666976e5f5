"""
act_generator - template + data rows + rules -> campaign / ad group / ad tree.
"""
from .errors import FilterError, GeneratorError, GroupingConfigError, JobConfigError
from .grouper import GroupingConfig, HierarchicalGrouper, group_rows_into_campaigns
from .models import AdGroupTemplate, AdTemplate, Budget, CampaignTemplate
from .orchestrator import GenerationInput, GenerationOptions, GenerationOrchestrator
from .platform_limits import check_all_field_lengths, check_field_length, truncate_text
from .rules import Rule, RuleEngine
from .variable_engine import VariableEngine
from .variations import InlineVariationGenerator, VariationConfig

__all__ = [
    "FilterError",
    "GeneratorError",
    "GroupingConfigError",
    "JobConfigError",
    "GroupingConfig",
    "HierarchicalGrouper",
    "group_rows_into_campaigns",
    "AdGroupTemplate",
    "AdTemplate",
    "Budget",
    "CampaignTemplate",
    "GenerationInput",
    "GenerationOptions",
    "GenerationOrchestrator",
    "check_all_field_lengths",
    "check_field_length",
    "truncate_text",
    "Rule",
    "RuleEngine",
    "VariableEngine",
    "InlineVariationGenerator",
    "VariationConfig",
]
