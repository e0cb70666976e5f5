"""
Exception types for the campaign generator.

Only structural/caller problems are raised. Per-value problems (missing
variables, failing filters, over-long fields) are reported as warnings.
"""


class GeneratorError(Exception):
    """Base class for all act_generator errors."""


class GroupingConfigError(GeneratorError, ValueError):
    """Invalid rows or GroupingConfig passed to the hierarchical grouper."""


class JobConfigError(GeneratorError, ValueError):
    """Job YAML (template / rules / options) failed validation."""


class FilterError(GeneratorError, ValueError):
    """Raised by a filter on bad input; always caught by the VariableEngine."""
