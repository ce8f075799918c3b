"""
Tests for the configuration module.
"""

import dataclasses

import pytest

from redactor.config import (
    AppConfig,
    DetectionConfig,
    ModelConfig,
    RedactionConfig,
    _validate,
    apply_overrides,
    load_config,
)


def test_load_defaults():
    """Test loading configuration without any file."""
    config = load_config(None)
    assert isinstance(config, AppConfig)
    assert config.model.detector == "yunet"
    assert config.detection.confidence_threshold == 0.7
    assert config.redaction.policy == "blur"
    assert config.redaction.blur_strength == 177
    assert (config.capture.width, config.capture.height) == (640, 480)
    assert config.display.quit_key == ord("q")
    assert config.output.record is False


def test_config_is_frozen():
    """Configuration cannot be mutated after construction."""
    config = load_config(None)
    with pytest.raises(dataclasses.FrozenInstanceError):
        config.redaction.policy = "outline"


def test_scale_factor_inverse():
    """The inverse is round(1 / scale_factor)."""
    assert DetectionConfig(scale_factor=1.0).scale_factor_inverse == 1
    assert DetectionConfig(scale_factor=0.5).scale_factor_inverse == 2
    assert DetectionConfig(scale_factor=0.25).scale_factor_inverse == 4
    assert DetectionConfig(scale_factor=0.3).scale_factor_inverse == 3


def test_validation_failure():
    """Test fail-fast validation."""
    # Invalid confidence
    with pytest.raises(ValueError, match="confidence_threshold"):
        _validate(AppConfig(detection=DetectionConfig(confidence_threshold=1.5)))

    # Invalid detector variant
    with pytest.raises(ValueError, match="detector"):
        _validate(AppConfig(model=ModelConfig(detector="retinaface")))

    # Invalid backend
    with pytest.raises(ValueError, match="backend"):
        _validate(AppConfig(model=ModelConfig(backend="invalid")))

    # Scale factor out of (0, 1]
    with pytest.raises(ValueError, match="scale_factor"):
        _validate(AppConfig(detection=DetectionConfig(scale_factor=2.0)))

    # Even blur kernel
    with pytest.raises(ValueError, match="blur_strength"):
        _validate(AppConfig(redaction=RedactionConfig(blur_strength=100)))

    # Unknown policy
    with pytest.raises(ValueError, match="policy"):
        _validate(AppConfig(redaction=RedactionConfig(policy="pixelate")))


def test_env_override(monkeypatch):
    """Test environment variable overrides."""
    monkeypatch.setenv("FACE_REDACT_DETECTION_CONFIDENCE_THRESHOLD", "0.9")
    monkeypatch.setenv("FACE_REDACT_MODEL_DETECTOR", "cascade")
    monkeypatch.setenv("FACE_REDACT_REDACTION_POLICY", "outline")
    monkeypatch.setenv("FACE_REDACT_OUTPUT_RECORD", "true")

    config = load_config(None)

    assert config.detection.confidence_threshold == 0.9
    assert config.model.detector == "cascade"
    assert config.redaction.policy == "outline"
    assert config.output.record is True


def test_yaml_file(tmp_path):
    """YAML values replace defaults; untouched keys keep theirs."""
    path = tmp_path / "config.yaml"
    path.write_text(
        "capture:\n"
        "  width: 1280\n"
        "  height: 720\n"
        "model:\n"
        "  detector: cascade\n"
        "  cascade_paths: [a.xml, b.xml]\n"
        "redaction:\n"
        "  outline_color: [255, 0, 0]\n"
        "display:\n"
        "  quit_key: x\n",
        encoding="utf-8",
    )

    config = load_config(str(path))

    assert (config.capture.width, config.capture.height) == (1280, 720)
    assert config.model.cascade_paths == ("a.xml", "b.xml")
    assert config.redaction.outline_color == (255, 0, 0)
    assert config.display.quit_key == ord("x")
    assert config.detection.confidence_threshold == 0.7


def test_missing_yaml_file(tmp_path):
    """A named but missing config file fails loudly."""
    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "nope.yaml"))


def test_apply_overrides():
    """CLI-style overrides replace set fields and ignore None."""
    config = load_config(None)

    updated = apply_overrides(
        config,
        detection={"confidence_threshold": 0.8, "scale_factor": None},
        redaction={"policy": "outline"},
    )

    assert updated.detection.confidence_threshold == 0.8
    assert updated.detection.scale_factor == 1.0
    assert updated.redaction.policy == "outline"
    # Source config is unchanged
    assert config.redaction.policy == "blur"


def test_apply_overrides_validates():
    """Overrides go through the same validation as files."""
    config = load_config(None)
    with pytest.raises(ValueError, match="confidence_threshold"):
        apply_overrides(config, detection={"confidence_threshold": -0.1})


def test_scale_factor_must_invert_to_whole_number():
    """Scale factors that are not 1/n would misplace redactions."""
    with pytest.raises(ValueError, match="1/n"):
        _validate(AppConfig(detection=DetectionConfig(scale_factor=0.4)))

    with pytest.raises(ValueError, match="1/n"):
        _validate(AppConfig(detection=DetectionConfig(scale_factor=0.3)))

    for scale in (1.0, 0.5, 0.333, 0.25):
        _validate(AppConfig(detection=DetectionConfig(scale_factor=scale)))
