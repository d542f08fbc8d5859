"""Configuration loading and validation.

Usage:
    config = load("readiness-config.yaml")        # raises ConfigError on bad config
    source = config.history_source()              # HistoryClient or FileHistorySource
    generate_template("readiness-config.yaml")    # writes example file to disk
"""

import os
from dataclasses import dataclass
from pathlib import Path

import yaml

from merge_readiness.scoring import COVERAGE_POLICIES, COVERAGE_THRESHOLD

DEFAULT_CONFIG_PATH = "readiness-config.yaml"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class ConfigError(Exception):
    """Raised when the configuration is missing or invalid."""


# ---------------------------------------------------------------------------
# Config dataclass
# ---------------------------------------------------------------------------

@dataclass
class Config:
    threshold: float = 80
    coverage_policy: str = "threshold"
    coverage_threshold: float = COVERAGE_THRESHOLD
    history_url: str = ""
    history_path: str = "dashboard-history.json"
    window: int = 10
    cache_ttl: float = 300

    def history_source(self):
        """Return the configured run-history provider.

        A non-empty ``history.url`` wins over ``history.path``.
        """
        from merge_readiness.client import FileHistorySource, HistoryClient

        if self.history_url:
            return HistoryClient(url=self.history_url, cache_ttl=self.cache_ttl)
        return FileHistorySource(self.history_path, cache_ttl=self.cache_ttl)


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

def load(config_path: str = DEFAULT_CONFIG_PATH, required: bool = True) -> Config:
    """Load and validate configuration from a YAML file.

    Environment variables READINESS_THRESHOLD and READINESS_HISTORY_URL
    override file values. With ``required=False`` a missing file means
    built-in defaults.

    Raises:
        ConfigError: if the file is missing (and required), malformed, or
                     holds invalid values.
    """
    path = Path(config_path)

    raw: dict = {}
    if path.exists():
        try:
            with path.open(encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Failed to parse '{config_path}': {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigError(f"'{config_path}' must be a YAML mapping at the top level.")
    elif required:
        raise ConfigError(
            f"Config file not found: '{config_path}'\n"
            "Run `merge-readiness init` to generate a template."
        )

    gate = raw.get("gate") or {}
    history = raw.get("history") or {}
    defaults = Config()

    try:
        config = Config(
            threshold=float(os.environ.get("READINESS_THRESHOLD") or gate.get("threshold", defaults.threshold)),
            coverage_policy=str(gate.get("coverage_policy", defaults.coverage_policy)).strip(),
            coverage_threshold=float(gate.get("coverage_threshold", defaults.coverage_threshold)),
            history_url=str(os.environ.get("READINESS_HISTORY_URL") or history.get("url") or "").strip(),
            history_path=str(history.get("path") or defaults.history_path).strip(),
            window=int(history.get("window", defaults.window)),
            cache_ttl=float(history.get("cache_ttl", defaults.cache_ttl)),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid value in '{config_path}': {exc}") from exc

    _validate(config)
    return config


def _validate(config: Config) -> None:
    """Raise ConfigError if values are out of range."""
    errors: list[str] = []

    if not 0 <= config.threshold <= 100:
        errors.append("  - 'gate.threshold' must be between 0 and 100 (or READINESS_THRESHOLD)")
    if config.coverage_policy not in COVERAGE_POLICIES:
        errors.append(
            f"  - 'gate.coverage_policy' must be one of: {', '.join(COVERAGE_POLICIES)}"
        )
    if not 0 < config.coverage_threshold <= 100:
        errors.append("  - 'gate.coverage_threshold' must be greater than 0 and at most 100")
    if config.window < 1:
        errors.append("  - 'history.window' must be a positive integer")
    if config.cache_ttl < 0:
        errors.append("  - 'history.cache_ttl' must not be negative")

    if errors:
        raise ConfigError("Invalid configuration:\n" + "\n".join(errors))


# ---------------------------------------------------------------------------
# Template generator (used by `init` command)
# ---------------------------------------------------------------------------

TEMPLATE = """\
gate:
  threshold: 80                 # minimum readiness score to pass the gate
  coverage_policy: threshold    # threshold | delta
  coverage_threshold: 80        # absolute coverage floor (threshold policy)

history:
  url: ""                       # published dashboard-history.json (wins over path)
  path: "dashboard-history.json"
  window: 10                    # runs considered by `aggregate`
  cache_ttl: 300                # seconds
"""


def generate_template(output_path: str = DEFAULT_CONFIG_PATH) -> None:
    """Write a template readiness-config.yaml to *output_path*.

    Raises:
        ConfigError: if the file already exists.
    """
    path = Path(output_path)
    if path.exists():
        raise ConfigError(
            f"'{output_path}' already exists. Remove it first or choose a different path."
        )
    path.write_text(TEMPLATE, encoding="utf-8")
