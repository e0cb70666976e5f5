# act_generator/cli.py
from __future__ import annotations

import argparse
import json
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List

import duckdb

from .config_loader import load_job_config
from .config_models import JobConfig
from .errors import GeneratorError
from .logging_config import init_logging, setup_logging
from .orchestrator import GenerationInput, GenerationOptions, GenerationOrchestrator
from .rules import RuleEngine
from .settings import Settings, get_settings
from .variations import InlineVariationGenerator

logger = setup_logging(__name__)

_ROW_READERS = {
    ".csv": "read_csv_auto",
    ".json": "read_json_auto",
    ".jsonl": "read_json_auto",
    ".ndjson": "read_json_auto",
}


# -----------------------------
# Rows
# -----------------------------
def load_rows(path: Path) -> List[Dict[str, Any]]:
    """Load a CSV / JSON file as dict rows via an in-memory DuckDB."""
    reader = _ROW_READERS.get(path.suffix.lower())
    if reader is None:
        raise ValueError(f"Unsupported rows file type: {path.suffix} (use .csv or .json)")

    escaped = str(path).replace("'", "''")
    con = duckdb.connect(database=":memory:")
    try:
        cur = con.execute(f"SELECT * FROM {reader}('{escaped}')")
        cols = [c[0] for c in cur.description]
        rows = cur.fetchall()
    finally:
        con.close()
    return [dict(zip(cols, r)) for r in rows]


# -----------------------------
# Commands
# -----------------------------
def _orchestrator(settings: Settings) -> GenerationOrchestrator:
    return GenerationOrchestrator(rule_engine=RuleEngine(case_insensitive=settings.case_insensitive_rules))


def _options(job: JobConfig, args: argparse.Namespace, settings: Settings) -> GenerationOptions:
    validate = job.options.validate_platform_limits
    if validate is None:
        validate = settings.validate_platform_limits
    if getattr(args, "validate_limits", False):
        validate = True
    return GenerationOptions(
        validate_platform_limits=validate,
        deduplicate_campaigns=job.options.deduplicate_campaigns,
        deduplicate_ads=job.options.deduplicate_ads,
        inline_variations=job.options.inline_variations,
        variation_config=job.options.variation_config(),
    )


def _generation_input(job: JobConfig, rows: List[Dict[str, Any]]) -> GenerationInput:
    return GenerationInput(template=job.template.to_domain(), data_rows=rows, rules=job.domain_rules())


def cmd_generate(job: JobConfig, rows: List[Dict[str, Any]], args: argparse.Namespace, settings: Settings) -> Dict[str, Any]:
    out = _orchestrator(settings).generate(_generation_input(job, rows), _options(job, args, settings))
    return out.to_dict()


def cmd_preview(job: JobConfig, rows: List[Dict[str, Any]], args: argparse.Namespace, settings: Settings) -> Dict[str, Any]:
    limit = args.limit if args.limit is not None else settings.preview_limit
    out = _orchestrator(settings).preview(_generation_input(job, rows), limit, _options(job, args, settings))
    return out.to_dict()


def cmd_estimate(job: JobConfig, rows: List[Dict[str, Any]], args: argparse.Namespace, settings: Settings) -> Dict[str, Any]:
    return _orchestrator(settings).estimate_counts(_generation_input(job, rows)).to_dict()


def cmd_group(job: JobConfig, rows: List[Dict[str, Any]], args: argparse.Namespace, settings: Settings) -> Dict[str, Any]:
    if job.grouping is None:
        raise GeneratorError("Job config has no 'grouping' section")
    out = _orchestrator(settings).generate_grouped(rows, job.domain_rules(), job.grouping.to_domain())
    return out.to_dict()


def cmd_variations(job: JobConfig, rows: List[Dict[str, Any]], args: argparse.Namespace, settings: Settings) -> Dict[str, Any]:
    config = job.options.variation_config()
    if args.max_variations is not None:
        config.max_variations = args.max_variations

    generator = InlineVariationGenerator()
    template = job.template.to_domain()
    results = []
    for row in rows:
        for ag in template.ad_group_templates:
            for ad in ag.ad_templates:
                entry = asdict(generator.generate_variations(ad, row, config))
                entry["ad_template_id"] = ad.id
                results.append(entry)
    return {"results": results}


COMMANDS = {
    "generate": cmd_generate,
    "preview": cmd_preview,
    "estimate": cmd_estimate,
    "group": cmd_group,
    "variations": cmd_variations,
}


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="act_generator")
    sub = p.add_subparsers(dest="command", required=True)

    helps = {
        "generate": "Generate one campaign per data row",
        "preview": "Generate and return the first N campaigns (full statistics)",
        "estimate": "Estimate campaign / ad group / ad counts (rules only)",
        "group": "Group rows into campaigns by name patterns",
        "variations": "Expand [[a|b]] inline variations per row and ad template",
    }
    for name, help_text in helps.items():
        sp = sub.add_parser(name, help=help_text)
        sp.add_argument("job_path", help="Path to job YAML (template, rules, options)")
        sp.add_argument("rows_path", help="Path to data rows (.csv or .json)")
        sp.add_argument("--output", default=None, help="Write JSON here instead of stdout")
        if name in ("generate", "preview"):
            sp.add_argument(
                "--validate-limits",
                action="store_true",
                help="Check ad fields against platform character limits",
            )
        if name == "preview":
            sp.add_argument("--limit", type=int, default=None, help="Campaigns to return. Must be >= 0.")
        if name == "variations":
            sp.add_argument("--max-variations", type=int, default=None, help="Cap per ad template. Must be >= 0.")

    return p


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    init_logging(settings.log_level, settings.log_dir, settings.log_console)

    if getattr(args, "limit", None) is not None and args.limit < 0:
        print("ERROR: --limit must be >= 0", file=sys.stderr)
        return 2
    if getattr(args, "max_variations", None) is not None and args.max_variations < 0:
        print("ERROR: --max-variations must be >= 0", file=sys.stderr)
        return 2

    try:
        job = load_job_config(args.job_path)
        rows_path = Path(args.rows_path)
        if not rows_path.exists():
            raise FileNotFoundError(f"Rows file not found: {rows_path}")
        rows = load_rows(rows_path)
        result = COMMANDS[args.command](job, rows, args, settings)
    except FileNotFoundError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    except (GeneratorError, ValueError, duckdb.Error) as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    text = json.dumps(result, indent=2, default=str)
    if args.output:
        Path(args.output).write_text(text, encoding="utf-8")
        print(f"Wrote {args.output}")
    else:
        print(text)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
