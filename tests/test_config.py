"""
Config Tests
============
IterationConfig validation, config file normalisation and override precedence.
"""
import json

import pytest

from pr_iterate.core import config as config_module
from pr_iterate.core.config import IterationConfig, load_config, read_config_file
from pr_iterate.core.constants import AttemptScope, BackoffStrategy, DEFAULT_MAX_ATTEMPTS, FailureCategory
from pr_iterate.core.errors import InvalidConfiguration


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for var in config_module.ENV_OPTIONS:
        monkeypatch.delenv(var, raising=False)


def test_defaults():
    cfg = IterationConfig()

    assert cfg.max_iterations == config_module.DEFAULT_MAX_ITERATIONS
    assert cfg.parallel is False
    assert cfg.auto_fix is True
    assert cfg.attempt_scope == AttemptScope.CATEGORY
    assert dict(cfg.max_attempts_per_category) == DEFAULT_MAX_ATTEMPTS
    assert cfg.max_attempts(FailureCategory.SECURITY) == 1
    assert cfg.max_attempts(FailureCategory.TEST) == 3


def test_partial_attempt_map_merges_with_defaults():
    cfg = IterationConfig(max_attempts_per_category={"Test": 5})

    assert cfg.max_attempts(FailureCategory.TEST) == 5
    assert cfg.max_attempts(FailureCategory.BUILD) == DEFAULT_MAX_ATTEMPTS[FailureCategory.BUILD]


def test_config_is_immutable():
    cfg = IterationConfig(disabled_categories=["lint"], required_checks=["build"])

    with pytest.raises(Exception):
        cfg.max_iterations = 99
    with pytest.raises(TypeError):
        cfg.max_attempts_per_category[FailureCategory.TEST] = 99
    with pytest.raises(AttributeError):
        cfg.disabled_categories.append(FailureCategory.BUILD)
    with pytest.raises(AttributeError):
        cfg.required_checks.append("lint")
    assert cfg.max_attempts(FailureCategory.TEST) == 3


@pytest.mark.parametrize("overrides", [
    {"max_iterations": 0},
    {"timeout": -1},
    {"backoff_strategy": "random"},
    {"initial_delay": 10, "max_delay": 5},
    {"multiplier": 0.5},
    {"repository": "not a repo"},
    {"max_attempts_per_category": {"test": -1}},
    {"max_attempts_per_category": {"flaky": 2}},
    {"classification_rules": [{"pattern": "(", "category": "lint"}]},
    {"unknown_option": True},
])
def test_invalid_values_raise_invalid_configuration(overrides):
    with pytest.raises(InvalidConfiguration):
        load_config(overrides=overrides)


def test_overrides_ignore_none():
    cfg = load_config(overrides={"max_iterations": 4, "parallel": None, "timeout": None})

    assert cfg.max_iterations == 4
    assert cfg.parallel is False
    assert cfg.timeout == config_module.DEFAULT_TIMEOUT


def test_yaml_file_with_flat_keys(tmp_path):
    path = tmp_path / "pr-iterate.yml"
    path.write_text(
        "maxIterations: 6\n"
        "parallel: true\n"
        "backoffStrategy: linear\n"
        "attempt_scope: check\n",
        encoding="utf-8",
    )

    cfg = load_config(str(path))

    assert cfg.max_iterations == 6
    assert cfg.parallel is True
    assert cfg.backoff_strategy == BackoffStrategy.LINEAR
    assert cfg.attempt_scope == AttemptScope.CHECK


def test_json_file_with_nested_sections(tmp_path, caplog):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "pr-iterate": {
            "maxIterations": 8,
            "monitorCI": True,
            "backoff": {"strategy": "fixed", "initialDelay": 1500, "maxDelay": 60000},
            "ci": {"requiredChecks": ["test-suite", "lint"]},
            "fixes": {
                "testFailures": {"enabled": True, "maxAttempts": 4},
                "lintErrors": {"enabled": False},
            },
        },
        "other-tool": {"ignored": True},
    }), encoding="utf-8")

    cfg = load_config(str(path))

    assert cfg.max_iterations == 8
    assert cfg.backoff_strategy == BackoffStrategy.FIXED
    assert cfg.initial_delay == pytest.approx(1.5)
    assert cfg.max_delay == pytest.approx(60.0)
    assert cfg.required_checks == ("test-suite", "lint")
    assert cfg.max_attempts(FailureCategory.TEST) == 4
    assert cfg.disabled_categories == (FailureCategory.LINT,)
    assert "monitor_ci" in caplog.text


def test_overrides_beat_file(tmp_path):
    path = tmp_path / "config.yml"
    path.write_text("max_iterations: 6\nparallel: true\n", encoding="utf-8")

    cfg = load_config(str(path), {"max_iterations": 2})

    assert cfg.max_iterations == 2
    assert cfg.parallel is True


def test_unknown_fixes_entry(tmp_path):
    path = tmp_path / "config.yml"
    path.write_text("fixes:\n  flakyTests:\n    enabled: true\n", encoding="utf-8")

    with pytest.raises(InvalidConfiguration):
        read_config_file(str(path))


def test_missing_file():
    with pytest.raises(InvalidConfiguration, match="not found"):
        load_config("/nonexistent/pr-iterate.yml")


def test_non_mapping_file(tmp_path):
    path = tmp_path / "config.yml"
    path.write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(InvalidConfiguration):
        read_config_file(str(path))


def test_classification_rules_from_file(tmp_path):
    path = tmp_path / "config.yml"
    path.write_text(
        "classification_rules:\n"
        "  - pattern: storybook\n"
        "    category: build\n",
        encoding="utf-8",
    )

    cfg = load_config(str(path))

    assert cfg.classification_rules[0].pattern == "storybook"
    assert cfg.classification_rules[0].category == FailureCategory.BUILD


# ===================================================================
# Environment
# ===================================================================
def test_environment_values_are_used(monkeypatch):
    monkeypatch.setenv("PR_ITERATE_MAX_ITERATIONS", "7")
    monkeypatch.setenv("PR_ITERATE_TIMEOUT", "120")
    monkeypatch.setenv("PR_ITERATE_BACKOFF", "fixed")
    monkeypatch.setenv("GITHUB_REPOSITORY", "octo/repo")

    cfg = load_config()

    assert cfg.max_iterations == 7
    assert cfg.timeout == 120.0
    assert cfg.backoff_strategy == BackoffStrategy.FIXED
    assert cfg.repository == "octo/repo"


def test_file_and_overrides_beat_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("PR_ITERATE_MAX_ITERATIONS", "7")
    monkeypatch.setenv("PR_ITERATE_TIMEOUT", "120")
    path = tmp_path / "config.yml"
    path.write_text("max_iterations: 6\n", encoding="utf-8")

    cfg = load_config(str(path), {"timeout": 30})

    assert cfg.max_iterations == 6
    assert cfg.timeout == 30.0


@pytest.mark.parametrize("var, value", [
    ("PR_ITERATE_MAX_ITERATIONS", "0"),
    ("PR_ITERATE_MAX_ITERATIONS", "many"),
    ("PR_ITERATE_TIMEOUT", "-5"),
    ("PR_ITERATE_BACKOFF", "random"),
    ("GITHUB_REPOSITORY", "not a repo"),
])
def test_invalid_environment_raises_invalid_configuration(monkeypatch, var, value):
    monkeypatch.setenv(var, value)

    with pytest.raises(InvalidConfiguration):
        load_config()


def test_blank_environment_values_are_ignored(monkeypatch):
    monkeypatch.setenv("PR_ITERATE_MAX_ITERATIONS", "  ")

    assert config_module.env_options() == {}
    assert load_config().max_iterations == config_module.DEFAULT_MAX_ITERATIONS


# ===================================================================
# Nested backoff delays
# ===================================================================
@pytest.mark.parametrize("document", [
    '{"pr-iterate": {"backoff": {"initialDelay": "soon"}}}',
    "backoff:\n  maxDelay:\n",
    "backoff:\n  initialDelay: [1, 2]\n",
])
def test_bad_backoff_delay_raises_invalid_configuration(tmp_path, document):
    path = tmp_path / "config.yml"
    path.write_text(document, encoding="utf-8")

    with pytest.raises(InvalidConfiguration, match="milliseconds"):
        load_config(str(path))
