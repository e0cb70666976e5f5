from pathlib import Path

import yaml
from pydantic import ValidationError

from .config_models import JobConfig, parse_job_config
from .errors import JobConfigError
from .logging_config import setup_logging

logger = setup_logging(__name__)


def load_job_config(path: str) -> JobConfig:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Job config not found: {path}")

    try:
        data = yaml.safe_load(p.read_text(encoding="utf8"))
    except yaml.YAMLError as e:
        logger.error(f"Job config {path} is not valid YAML: {e}")
        raise JobConfigError(f"Job config is not valid YAML: {e}") from e

    if not isinstance(data, dict):
        logger.error(f"Job config {path} is not a mapping")
        raise JobConfigError("Job config must be a YAML mapping/object")

    try:
        return parse_job_config(data)
    except ValidationError as e:
        logger.error(f"Job config {path} failed validation: {e.error_count()} error(s)")
        raise JobConfigError(str(e)) from e
