import textwrap

import pytest

from act_generator.config_loader import load_job_config
from act_generator.errors import JobConfigError
from act_generator.rules import ConditionGroup, ModifyFieldAction, RemoveFromGroupAction, SkipAction
from act_generator.settings import get_settings

JOB_YAML = """
template:
  id: tmpl-shoes
  name: "{brand} - {product}"
  platform: Google
  objective: CONVERSIONS
  budget:
    type: daily
    amount: 25
    currency: eur
  ad_groups:
    - id: ag-1
      name: "{product}"
      ads:
        - id: ad-1
          headline: "Buy {product}"
          description: "From {brand}"
          final_url: "https://shop.test/{sku}"

rules:
  - id: skip-out-of-stock
    priority: 1
    conditions:
      logic: or
      conditions:
        - field: stock
          operator: equals
          value: 0
        - logic: AND
          conditions:
            - field: status
              operator: in
              value: [discontinued, recalled]
    actions:
      - type: skip
  - id: sale-suffix
    priority: 2
    actions:
      - type: modify_field
        field: product
        operation: append
        value: " Sale"

grouping:
  campaign_name_pattern: "{brand}"
  ad_group_name_pattern: "{product}"
  ad_mapping:
    headline: "{headline}"
    description: "{description}"

options:
  validate_platform_limits: true
  inline_variations: true
  max_variations: 3
"""


def _write(tmp_path, text, name="job.yaml"):
    path = tmp_path / name
    path.write_text(textwrap.dedent(text), encoding="utf8")
    return str(path)


def test_load_full_job(tmp_path):
    job = load_job_config(_write(tmp_path, JOB_YAML))

    template = job.template.to_domain()
    assert template.platform == "google"
    assert template.budget.currency == "EUR"
    assert template.budget.amount == 25.0
    assert template.ad_groups_per_campaign == 1
    assert template.ad_group_templates[0].ad_templates[0].final_url == "https://shop.test/{sku}"

    rules = job.domain_rules()
    assert [r.id for r in rules] == ["skip-out-of-stock", "sale-suffix"]
    skip = rules[0]
    assert skip.name == "skip-out-of-stock"
    assert skip.condition_group.logic == "OR"
    assert isinstance(skip.condition_group.conditions[1], ConditionGroup)
    assert isinstance(skip.actions[0], SkipAction)
    assert isinstance(rules[1].actions[0], ModifyFieldAction)
    assert rules[1].condition_group.conditions == []

    assert job.grouping.to_domain().campaign_name_pattern == "{brand}"
    assert job.options.validate_platform_limits is True
    assert job.options.variation_config().max_variations == 3


def test_minimal_job_defaults(tmp_path):
    job = load_job_config(_write(tmp_path, """
        template:
          id: t
          name: "{brand}"
          platform: reddit
    """))
    assert job.rules == []
    assert job.grouping is None
    assert job.options.validate_platform_limits is None
    assert job.template.to_domain().budget is None


def test_group_actions_parse(tmp_path):
    job = load_job_config(_write(tmp_path, """
        template: {id: t, name: n, platform: google}
        rules:
          - id: regroup
            actions:
              - {type: add_to_group, group_name: Sale}
              - {type: remove_from_group, group_name: Clearance}
    """))
    actions = job.domain_rules()[0].actions
    assert actions[1] == RemoveFromGroupAction(group_name="Clearance")


@pytest.mark.parametrize(
    "body",
    [
        # unknown platform
        """
        template: {id: t, name: n, platform: myspace}
        """,
        # unknown operator
        """
        template: {id: t, name: n, platform: google}
        rules:
          - id: r
            conditions:
              conditions:
                - {field: a, operator: looks_like, value: 1}
        """,
        # unknown action type
        """
        template: {id: t, name: n, platform: google}
        rules:
          - id: r
            actions:
              - {type: explode}
        """,
        # duplicate rule ids
        """
        template: {id: t, name: n, platform: google}
        rules:
          - {id: r}
          - {id: r}
        """,
        # fractional priority
        """
        template: {id: t, name: n, platform: google}
        rules:
          - {id: r, priority: 1.5}
        """,
        # grouping without description mapping
        """
        template: {id: t, name: n, platform: google}
        grouping:
          campaign_name_pattern: a
          ad_group_name_pattern: b
          ad_mapping: {headline: h}
        """,
        # negative max_variations
        """
        template: {id: t, name: n, platform: google}
        options: {max_variations: -1}
        """,
        # missing template
        """
        rules: []
        """,
    ],
)
def test_invalid_jobs_raise(tmp_path, body):
    with pytest.raises(JobConfigError):
        load_job_config(_write(tmp_path, body))


def test_non_mapping_document(tmp_path):
    with pytest.raises(JobConfigError):
        load_job_config(_write(tmp_path, "- just\n- a list\n"))


def test_invalid_yaml(tmp_path):
    with pytest.raises(JobConfigError):
        load_job_config(_write(tmp_path, "template: [unclosed\n"))


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_job_config(str(tmp_path / "nope.yaml"))


def test_job_config_error_is_a_value_error(tmp_path):
    with pytest.raises(ValueError):
        load_job_config(_write(tmp_path, "42\n"))


# ─────────────────────────────────────────────────────────────
# Settings
# ─────────────────────────────────────────────────────────────
def test_settings_read_environment(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("ACT_GEN_PREVIEW_LIMIT", "5")
    monkeypatch.setenv("ACT_GEN_VALIDATE_LIMITS", "yes")
    monkeypatch.setenv("ACT_GEN_CASE_INSENSITIVE", "false")
    monkeypatch.setenv("ACT_GEN_LOG_LEVEL", "debug")
    monkeypatch.setenv("ACT_GEN_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("ACT_GEN_LOG_CONSOLE", "no")

    settings = get_settings()
    assert settings.preview_limit == 5
    assert settings.validate_platform_limits is True
    assert settings.case_insensitive_rules is False
    assert settings.log_level == "DEBUG"
    assert settings.log_dir == str(tmp_path / "logs")
    assert settings.log_console is False


def test_settings_defaults(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for name in ("ACT_GEN_PREVIEW_LIMIT", "ACT_GEN_VALIDATE_LIMITS", "ACT_GEN_CASE_INSENSITIVE"):
        monkeypatch.delenv(name, raising=False)

    settings = get_settings()
    assert settings.preview_limit == 20
    assert settings.validate_platform_limits is False
    assert settings.case_insensitive_rules is True
