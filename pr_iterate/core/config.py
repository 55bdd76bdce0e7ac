"""
Configuration
=============
Loads environment variables from .env file using python-dotenv and builds the
immutable IterationConfig that is passed into every component of a run.

Environment Variables:
    GITHUB_TOKEN               — Required for polling PR check runs on private repos
    GITHUB_REPOSITORY          — Default "owner/repo" the target PR lives in
    PR_ITERATE_MAX_ITERATIONS  — Max poll → classify → dispatch passes (default: 10)
    PR_ITERATE_TIMEOUT         — Wall-clock budget for a run in seconds (default: 3600)
    PR_ITERATE_BACKOFF         — exponential | linear | fixed (default: exponential)
    PR_ITERATE_LOG_DIR         — Directory for the dated log file (default: logs)

    The first five are read per load_config call (ENV_OPTIONS) and validated
    like file values; a bad value raises InvalidConfiguration.

Precedence:
    defaults < environment < config file < explicit overrides (CLI flags / API body)

Config File:
    YAML or JSON. When the document has a top-level "pr-iterate" section only
    that section is read. camelCase keys are accepted, as are the nested
    "backoff", "ci" and "fixes" sections of the claude-flow JSON layout:

        {"pr-iterate": {
            "backoff": {"strategy": "linear", "initialDelay": 2000},
            "ci": {"requiredChecks": ["test-suite", "lint"]},
            "fixes": {"testFailures": {"enabled": true, "maxAttempts": 3}}
        }}

    Delays in the nested "backoff" section are milliseconds; every flat
    duration field is in seconds.
"""
import os
import re
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from pr_iterate.core.constants import (
    AttemptScope,
    BackoffStrategy,
    DEFAULT_MAX_ATTEMPTS,
    FailureCategory,
)
from pr_iterate.core.errors import InvalidConfiguration

load_dotenv()

logger = logging.getLogger(__name__)

LOG_DIR = os.getenv("PR_ITERATE_LOG_DIR", "logs")

DEFAULT_MAX_ITERATIONS = 10
DEFAULT_TIMEOUT = 3600.0

# Environment variable → IterationConfig field. Values stay raw strings so
# they go through the same validation as every other source.
ENV_OPTIONS: dict[str, str] = {
    "GITHUB_TOKEN": "github_token",
    "GITHUB_REPOSITORY": "repository",
    "PR_ITERATE_MAX_ITERATIONS": "max_iterations",
    "PR_ITERATE_TIMEOUT": "timeout",
    "PR_ITERATE_BACKOFF": "backoff_strategy",
}

# Config file section name used by the claude-flow JSON layout
CONFIG_SECTION = "pr-iterate"

# "fixes" section keys of the claude-flow layout → category
_FIX_SECTION_CATEGORIES: dict[str, FailureCategory] = {
    "security_issues": FailureCategory.SECURITY,
    "build_errors": FailureCategory.BUILD,
    "test_failures": FailureCategory.TEST,
    "lint_errors": FailureCategory.LINT,
    "performance_issues": FailureCategory.PERFORMANCE,
    "unknown": FailureCategory.UNKNOWN,
}

_CAMEL_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_REPO_RE = re.compile(r"^[\w.\-]+/[\w.\-]+$")


class ClassificationRule(BaseModel):
    """User-supplied classifier rule, tried before the built-in ones."""
    model_config = ConfigDict(frozen=True)

    pattern: str
    category: FailureCategory

    @field_validator("pattern")
    @classmethod
    def validate_pattern(cls, v: str) -> str:
        try:
            re.compile(v)
        except re.error as exc:
            raise ValueError(f"invalid regex {v!r}: {exc}")
        return v


class IterationConfig(BaseModel):
    """Immutable configuration for one remediation run."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    # --- Loop bounds ---
    max_iterations: int = Field(default=DEFAULT_MAX_ITERATIONS, gt=0, validate_default=True)
    timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0, validate_default=True)

    # --- Dispatch ---
    parallel: bool = False
    auto_fix: bool = True
    dry_run: bool = False
    max_attempts_per_category: Mapping[FailureCategory, int] = Field(
        default_factory=lambda: dict(DEFAULT_MAX_ATTEMPTS), validate_default=True
    )
    attempt_scope: AttemptScope = AttemptScope.CATEGORY
    disabled_categories: Tuple[FailureCategory, ...] = ()
    strategy_timeout: Optional[float] = Field(default=None, gt=0)

    # --- Backoff ---
    backoff_strategy: BackoffStrategy = BackoffStrategy.EXPONENTIAL
    initial_delay: float = Field(default=2.0, ge=0)
    max_delay: float = Field(default=300.0, ge=0)
    multiplier: float = Field(default=2.0, ge=1)

    # --- Check source ---
    repository: str = ""
    github_token: str = ""
    required_checks: Tuple[str, ...] = ()
    classification_rules: Tuple[ClassificationRule, ...] = ()

    # --- Notifications ---
    webhook_url: Optional[str] = None

    @field_validator("max_attempts_per_category", mode="before")
    @classmethod
    def merge_attempt_defaults(cls, v: Any) -> Any:
        """Partial maps only override the categories they name."""
        if not isinstance(v, Mapping):
            return v
        merged: Dict[Any, Any] = dict(DEFAULT_MAX_ATTEMPTS)
        for key, limit in v.items():
            if not isinstance(key, FailureCategory):
                key = FailureCategory(str(key).strip().lower())
            merged[key] = limit
        return merged

    @field_validator("max_attempts_per_category")
    @classmethod
    def validate_attempts(cls, v: Mapping[FailureCategory, int]) -> Mapping[FailureCategory, int]:
        for category, limit in v.items():
            if limit < 0:
                raise ValueError(f"max attempts for {category.value} must be >= 0")
        # Read-only view so the frozen model cannot be changed through the dict
        return MappingProxyType(dict(v))

    @field_validator("repository")
    @classmethod
    def validate_repository(cls, v: str) -> str:
        v = v.strip()
        if v and not _REPO_RE.match(v):
            raise ValueError("repository must look like 'owner/repo'")
        return v

    @model_validator(mode="after")
    def validate_delays(self) -> "IterationConfig":
        if self.max_delay < self.initial_delay:
            raise ValueError("max_delay must be >= initial_delay")
        return self

    def max_attempts(self, category: FailureCategory) -> int:
        return self.max_attempts_per_category.get(category, 0)


# ---------------------------------------------------------------------------
# File loading helpers
# ---------------------------------------------------------------------------
def _snake(key: str) -> str:
    return _CAMEL_RE.sub("_", key).replace("-", "_").lower()


def _snake_keys(data: Dict[str, Any]) -> Dict[str, Any]:
    return {_snake(str(k)): v for k, v in data.items()}


def _ms_to_seconds(value: Any, key: str) -> float:
    try:
        return float(value) / 1000.0
    except (TypeError, ValueError):
        raise InvalidConfiguration(f"{key} must be a number of milliseconds, got {value!r}")


def env_options(environ: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """Options set through the environment, keyed by IterationConfig field."""
    environ = os.environ if environ is None else environ
    return {
        field_name: environ[var]
        for var, field_name in ENV_OPTIONS.items()
        if environ.get(var, "").strip()
    }


def _normalise_file_section(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Flatten the nested claude-flow layout into IterationConfig field names."""
    data = _snake_keys(raw)

    backoff = data.pop("backoff", None)
    if isinstance(backoff, str):
        data["backoff_strategy"] = backoff
    elif isinstance(backoff, dict):
        backoff = _snake_keys(backoff)
        if "strategy" in backoff:
            data["backoff_strategy"] = backoff["strategy"]
        if "initial_delay" in backoff:
            data["initial_delay"] = _ms_to_seconds(backoff["initial_delay"], "backoff.initialDelay")
        if "max_delay" in backoff:
            data["max_delay"] = _ms_to_seconds(backoff["max_delay"], "backoff.maxDelay")
        if "multiplier" in backoff:
            data["multiplier"] = backoff["multiplier"]

    ci = data.pop("ci", None)
    if isinstance(ci, dict):
        ci = _snake_keys(ci)
        if "required_checks" in ci:
            data["required_checks"] = ci["required_checks"]

    fixes = data.pop("fixes", None)
    if isinstance(fixes, dict):
        attempts = dict(data.get("max_attempts_per_category") or {})
        disabled = list(data.get("disabled_categories") or [])
        for key, settings in _snake_keys(fixes).items():
            category = _FIX_SECTION_CATEGORIES.get(key)
            if category is None or not isinstance(settings, dict):
                raise InvalidConfiguration(f"Unknown fixes entry: {key!r}")
            settings = _snake_keys(settings)
            if "max_attempts" in settings:
                attempts[category.value] = settings["max_attempts"]
            if settings.get("enabled") is False:
                disabled.append(category.value)
        if attempts:
            data["max_attempts_per_category"] = attempts
        if disabled:
            data["disabled_categories"] = disabled

    # claude-flow options with no counterpart here
    for ignored in ("monitor_ci", "quality_gates"):
        if ignored in data:
            logger.warning("Ignoring unsupported config option: %s", ignored)
            data.pop(ignored)

    return data


def read_config_file(path: str) -> Dict[str, Any]:
    """Read a YAML/JSON config file and return its normalised option mapping."""
    config_path = Path(path)
    if not config_path.is_file():
        raise InvalidConfiguration(f"Config file not found: {path}")

    try:
        document = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise InvalidConfiguration(f"Config file {path} is not valid YAML/JSON: {exc}")

    if not isinstance(document, dict):
        raise InvalidConfiguration(f"Config file {path} must contain a mapping")

    section = document.get(CONFIG_SECTION, document)
    if not isinstance(section, dict):
        raise InvalidConfiguration(f"'{CONFIG_SECTION}' section in {path} must be a mapping")

    return _normalise_file_section(section)


def load_config(
    path: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> IterationConfig:
    """
    Build the IterationConfig for a run.

    Parameters
    ----------
    path : str, optional
        YAML/JSON config file.
    overrides : dict, optional
        Explicit option values (CLI flags, API body). None values are ignored
        so unset flags never mask the file or environment.

    Environment variables (ENV_OPTIONS) sit below the file and the overrides
    and are validated like any other value.

    Raises
    ------
    InvalidConfiguration
        If the file cannot be read or any value fails validation.
    """
    values: Dict[str, Any] = env_options()
    if path:
        values.update(read_config_file(path))
        logger.info("Loaded configuration file: %s", path)

    for key, value in (overrides or {}).items():
        if value is not None:
            values[key] = value

    try:
        return IterationConfig(**values)
    except (ValidationError, ValueError) as exc:
        raise InvalidConfiguration(f"Invalid configuration: {exc}")
