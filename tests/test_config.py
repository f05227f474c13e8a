import json
from pathlib import Path

import pytest

from cgm_episodes.config import RunConfig, convert_run_config, load_run_config
from cgm_episodes.exceptions import ConfigurationError
from cgm_episodes.models import Direction, EpisodeType, ExclusiveMode, RecoveryFallback, Severity
from models.config_models import RunConfigPayload


def _write(tmp_path: Path, payload) -> Path:
    path = tmp_path / "config.json"
    path.write_text(json.dumps(payload))
    return path


def test_load_run_config_applies_settings_and_overrides(tmp_path: Path):
    path = _write(
        tmp_path,
        {
            "exclusive_mode": "subtract",
            "nominal_sampling_minutes": 15,
            "workers": 3,
            "recovery_fallback": "finalize_at_core_end",
            "presets": {
                "hypo_lv1": {"min_core_duration_minutes": 20, "secondary_threshold": None},
                "hyper_lv2": {"entry_threshold": 300, "recovery_threshold": 280, "direction": "above"},
            },
        },
    )

    config = load_run_config(path)

    assert config.exclusive_mode is ExclusiveMode.SUBTRACT
    assert config.workers == 3
    hypo_lv1 = config.registry.get((EpisodeType.HYPO, Severity.LEVEL_1))
    assert hypo_lv1.min_core_duration_minutes == 20
    assert hypo_lv1.secondary_threshold is None
    assert hypo_lv1.nominal_sampling_minutes == 15
    assert hypo_lv1.recovery_fallback is RecoveryFallback.FINALIZE_AT_CORE_END
    hyper_lv2 = config.registry.get((EpisodeType.HYPER, Severity.LEVEL_2))
    assert (hyper_lv2.entry_threshold, hyper_lv2.recovery_threshold) == (300, 280)
    assert hyper_lv2.direction is Direction.ABOVE


def test_empty_config_uses_defaults(tmp_path: Path):
    config = load_run_config(_write(tmp_path, {}))

    assert config.exclusive_mode is None
    assert config.workers == 1
    assert len(config.registry) == 6


@pytest.mark.parametrize(
    "payload",
    [
        {"exclusive_mode": "sometimes"},
        {"workers": 0},
        {"unexpected": True},
        {"presets": {"hypo_lv1": {"colour": "red"}}},
        {"presets": {"hypo_lv1": {"min_core_duration_minutes": -5}}},
    ],
)
def test_invalid_payloads_raise_configuration_error(tmp_path: Path, payload):
    with pytest.raises(ConfigurationError):
        load_run_config(_write(tmp_path, payload))


def test_unknown_or_derived_preset_keys_are_rejected():
    with pytest.raises(ConfigurationError, match="hypo_lv9"):
        convert_run_config(RunConfigPayload(presets={"hypo_lv9": {}}))
    with pytest.raises(ConfigurationError, match="derived"):
        convert_run_config(RunConfigPayload(presets={"hyper_lv1_excl": {}}))


def test_malformed_json_and_missing_file(tmp_path: Path):
    broken = tmp_path / "broken.json"
    broken.write_text("{not json")

    with pytest.raises(ConfigurationError):
        load_run_config(broken)
    with pytest.raises(ConfigurationError, match="not found"):
        load_run_config(tmp_path / "absent.json")


def test_build_engine_needs_an_exclusive_mode():
    with pytest.raises(ConfigurationError, match="exclusive mode"):
        RunConfig().build_engine()

    engine = RunConfig(workers=2).build_engine(exclusive_mode=ExclusiveMode.OVERLAP)
    assert engine.exclusive_mode is ExclusiveMode.OVERLAP
    assert engine.workers == 2


def test_explicit_arguments_win_over_file_settings():
    config = RunConfig(exclusive_mode=ExclusiveMode.SUBTRACT, workers=4)

    engine = config.build_engine(exclusive_mode=ExclusiveMode.OVERLAP, workers=1)

    assert engine.exclusive_mode is ExclusiveMode.OVERLAP
    assert engine.workers == 1
