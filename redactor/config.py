"""
Configuration management for the face redaction pipeline.

Provides a layered configuration system with the following precedence
(highest to lowest):

    CLI arguments > Environment variables > YAML config file > Defaults

Design constraints:
    - The configuration is built once at startup, frozen, and passed by
      reference into every component. There is no module-level mutable state.
    - Missing or invalid values fail early and loudly.
    - No detection, redaction, or I/O logic belongs here.

Non-goals:
    - No dynamic reloading.
    - No per-frame policy switching.
"""

import dataclasses
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

import yaml

from redactor.geometry import inverse_scale_factor

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Project root resolution
# ---------------------------------------------------------------------------
# Resolved relative to this file's location: redactor/config.py → project root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent


def get_project_root() -> Path:
    """Return the resolved project root directory."""
    return _PROJECT_ROOT


def resolve_path(path: str) -> Path:
    """Resolve a possibly relative path against the project root."""
    resolved = Path(path)
    if not resolved.is_absolute():
        resolved = _PROJECT_ROOT / resolved
    return resolved


# ---------------------------------------------------------------------------
# Configuration dataclasses
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CaptureConfig:
    """Capture source configuration.

    Attributes:
        source: Integer device index (as a digit string) or a video file path.
        width: Requested capture width in pixels, fixed for the session.
        height: Requested capture height in pixels, fixed for the session.
    """

    source: str = "0"
    width: int = 640
    height: int = 480


@dataclass(frozen=True)
class ModelConfig:
    """Detector model configuration.

    Attributes:
        detector: Detector variant — 'yunet' (neural) or 'cascade' (Haar).
        yunet_path: Path to the YuNet .onnx model (relative to project root).
        cascade_paths: Cascade XML files run in sequence against the same
                       image. Bare file names not found under the project
                       root are looked up in OpenCV's bundled cascade data.
        backend: Compute backend for the neural detector — 'cpu' or 'cuda'.
        nms_threshold: IoU threshold for YuNet non-maximum suppression.
        top_k: Maximum YuNet candidates kept before NMS.
    """

    detector: str = "yunet"
    yunet_path: str = "models/face_detection_yunet_2023mar.onnx"
    cascade_paths: Tuple[str, ...] = (
        "haarcascade_frontalface_alt.xml",
        "haarcascade_profileface.xml",
    )
    backend: str = "cpu"
    nms_threshold: float = 0.3
    top_k: int = 5000


@dataclass(frozen=True)
class DetectionConfig:
    """Detection thresholds and detection-space scaling.

    Attributes:
        confidence_threshold: Minimum confidence for a detection to count
                              as a face.
        scale_factor: Ratio of detection resolution to capture resolution,
                      1/n for a whole number n.
                      1.0 runs detection on the full frame.
        cascade_scale_factor: Image pyramid step for cascade detection.
        min_neighbors: Cascade neighbour count needed to keep a candidate.
        min_size: Smallest face side, in detection-space pixels, for cascades.
    """

    confidence_threshold: float = 0.7
    scale_factor: float = 1.0
    cascade_scale_factor: float = 1.1
    min_neighbors: int = 2
    min_size: int = 30

    @property
    def scale_factor_inverse(self) -> int:
        """Integer factor mapping detection space back to display space."""
        return inverse_scale_factor(self.scale_factor)


@dataclass(frozen=True)
class RedactionConfig:
    """Redaction policy configuration.

    Attributes:
        policy: 'blur' (destructive) or 'outline' (visible annotation).
        blur_strength: Odd Gaussian kernel size used for blurring.
        adaptive_kernel: Raise the kernel to span the whole face region
                         when the region is larger than blur_strength.
        outline_color: BGR color of the outline.
        outline_thickness: Outline thickness in pixels.
    """

    policy: str = "blur"
    blur_strength: int = 177
    adaptive_kernel: bool = True
    outline_color: Tuple[int, int, int] = (0, 0, 255)
    outline_thickness: int = 2


@dataclass(frozen=True)
class DisplayConfig:
    """Display sink configuration.

    Attributes:
        enabled: Whether to open a window at all (False runs headless).
        window_name: Name of the single display window.
        show_stats: Overlay FPS and latency text on presented frames.
        quit_key: Key code that terminates the loop (113 is 'q').
        wait_ms: Quit-key poll duration per iteration, in milliseconds.
    """

    enabled: bool = True
    window_name: str = "window"
    show_stats: bool = True
    quit_key: int = 113
    wait_ms: int = 1


@dataclass(frozen=True)
class OutputConfig:
    """Persistence configuration.

    Attributes:
        record: Write redacted frames to a video file.
        video_path: Output video path (relative to project root).
        fourcc: Four-character codec code for the video writer.
        fps: Frame rate stamped into the output video.
        log_path: Optional .json or .csv file receiving a per-frame record
                  of redacted regions. None disables the log.
    """

    record: bool = False
    video_path: str = "output/redacted.mp4"
    fourcc: str = "mp4v"
    fps: float = 20.0
    log_path: Optional[str] = None


@dataclass(frozen=True)
class PipelineConfig:
    """Control loop tuning.

    Attributes:
        max_consecutive_misses: Empty grabs in a row before the capture
                                source is declared dead.
        max_consecutive_failures: Dropped frames in a row before a
                                  per-frame failure becomes fatal.
        frame_budget_ms: Iterations slower than this log a warning.
        log_interval: Emit a progress line every N presented frames.
    """

    max_consecutive_misses: int = 30
    max_consecutive_failures: int = 30
    frame_budget_ms: float = 100.0
    log_interval: int = 30


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration.

    Aggregates all sub-configurations into a single, frozen object.
    """

    capture: CaptureConfig = field(default_factory=CaptureConfig)
    model: ModelConfig = field(default_factory=ModelConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    redaction: RedactionConfig = field(default_factory=RedactionConfig)
    display: DisplayConfig = field(default_factory=DisplayConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

_VALID_DETECTORS = {"yunet", "cascade"}
_VALID_BACKENDS = {"cpu", "cuda"}
_VALID_POLICIES = {"blur", "outline"}
_SCALE_TOLERANCE = 1e-2  # 0.333 is accepted as 1/3
_VALID_LOG_SUFFIXES = {".json", ".csv"}


def _validate(config: AppConfig) -> None:
    """Validate configuration values. Raises ValueError on invalid state."""

    if config.capture.width <= 0 or config.capture.height <= 0:
        raise ValueError(
            f"capture.width and capture.height must be positive, "
            f"got {config.capture.width}x{config.capture.height}."
        )

    if config.model.detector not in _VALID_DETECTORS:
        raise ValueError(
            f"Invalid model.detector: '{config.model.detector}'. "
            f"Must be one of {_VALID_DETECTORS}."
        )

    if config.model.backend not in _VALID_BACKENDS:
        raise ValueError(
            f"Invalid model.backend: '{config.model.backend}'. "
            f"Must be one of {_VALID_BACKENDS}."
        )

    if config.model.detector == "cascade" and not config.model.cascade_paths:
        raise ValueError("model.cascade_paths must name at least one cascade file.")

    if not (0.0 <= config.model.nms_threshold <= 1.0):
        raise ValueError(
            f"model.nms_threshold must be in [0.0, 1.0], "
            f"got {config.model.nms_threshold}."
        )

    if config.model.top_k <= 0:
        raise ValueError(f"model.top_k must be positive, got {config.model.top_k}.")

    if not (0.0 <= config.detection.confidence_threshold <= 1.0):
        raise ValueError(
            f"detection.confidence_threshold must be in [0.0, 1.0], "
            f"got {config.detection.confidence_threshold}."
        )

    if not (0.0 < config.detection.scale_factor <= 1.0):
        raise ValueError(
            f"detection.scale_factor must be in (0.0, 1.0], "
            f"got {config.detection.scale_factor}."
        )

    inverse = 1.0 / config.detection.scale_factor
    if abs(inverse - round(inverse)) > _SCALE_TOLERANCE:
        raise ValueError(
            f"detection.scale_factor must be 1/n for a whole number n "
            f"(1.0, 0.5, 0.25, ...), got {config.detection.scale_factor}; "
            f"boxes are mapped back to the frame by an integer factor."
        )

    if config.detection.cascade_scale_factor <= 1.0:
        raise ValueError(
            f"detection.cascade_scale_factor must be greater than 1.0, "
            f"got {config.detection.cascade_scale_factor}."
        )

    if config.detection.min_neighbors < 0 or config.detection.min_size < 0:
        raise ValueError(
            "detection.min_neighbors and detection.min_size must be non-negative."
        )

    if config.redaction.policy not in _VALID_POLICIES:
        raise ValueError(
            f"Invalid redaction.policy: '{config.redaction.policy}'. "
            f"Must be one of {_VALID_POLICIES}."
        )

    strength = config.redaction.blur_strength
    if strength <= 0 or strength % 2 == 0:
        raise ValueError(
            f"redaction.blur_strength must be a positive odd integer, got {strength}."
        )

    if config.redaction.outline_thickness <= 0:
        raise ValueError(
            f"redaction.outline_thickness must be positive, "
            f"got {config.redaction.outline_thickness}."
        )

    if not (0 <= config.display.quit_key <= 255):
        raise ValueError(
            f"display.quit_key must be a key code in [0, 255], "
            f"got {config.display.quit_key}."
        )

    if config.display.wait_ms <= 0:
        raise ValueError(
            f"display.wait_ms must be positive, got {config.display.wait_ms}."
        )

    if len(config.output.fourcc) != 4:
        raise ValueError(
            f"output.fourcc must be exactly 4 characters, got '{config.output.fourcc}'."
        )

    if config.output.fps <= 0:
        raise ValueError(f"output.fps must be positive, got {config.output.fps}.")

    if config.output.log_path is not None:
        suffix = Path(config.output.log_path).suffix.lower()
        if suffix not in _VALID_LOG_SUFFIXES:
            raise ValueError(
                f"output.log_path must end in one of {_VALID_LOG_SUFFIXES}, "
                f"got '{config.output.log_path}'."
            )

    pipeline = config.pipeline
    if pipeline.max_consecutive_misses <= 0 or pipeline.max_consecutive_failures <= 0:
        raise ValueError(
            "pipeline.max_consecutive_misses and pipeline.max_consecutive_failures "
            "must be positive."
        )

    if pipeline.frame_budget_ms <= 0 or pipeline.log_interval <= 0:
        raise ValueError(
            "pipeline.frame_budget_ms and pipeline.log_interval must be positive."
        )


# ---------------------------------------------------------------------------
# YAML loading
# ---------------------------------------------------------------------------

def _parse_tuple(value, expected_len: int, cast_type=float):
    """Convert a list from YAML into a tuple of the expected type and length."""
    if isinstance(value, (list, tuple)):
        if len(value) != expected_len:
            raise ValueError(
                f"Expected {expected_len} values, got {len(value)}: {value}"
            )
        return tuple(cast_type(v) for v in value)
    return value


def _parse_bool(value) -> bool:
    """Interpret YAML booleans and env-var strings ('1', 'true', 'no', ...)."""
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _parse_paths(value) -> Tuple[str, ...]:
    """Accept a YAML list or a comma-separated string of paths."""
    if isinstance(value, str):
        return tuple(p.strip() for p in value.split(",") if p.strip())
    return tuple(str(p) for p in value)


def _build_capture_config(raw: dict) -> CaptureConfig:
    """Build CaptureConfig from a raw YAML dict."""
    kwargs = {}
    if "source" in raw:
        kwargs["source"] = str(raw["source"])
    if "width" in raw:
        kwargs["width"] = int(raw["width"])
    if "height" in raw:
        kwargs["height"] = int(raw["height"])
    return CaptureConfig(**kwargs)


def _build_model_config(raw: dict) -> ModelConfig:
    """Build ModelConfig from a raw YAML dict."""
    kwargs = {}
    if "detector" in raw:
        kwargs["detector"] = str(raw["detector"]).lower()
    if "yunet_path" in raw:
        kwargs["yunet_path"] = str(raw["yunet_path"])
    if "cascade_paths" in raw:
        kwargs["cascade_paths"] = _parse_paths(raw["cascade_paths"])
    if "backend" in raw:
        kwargs["backend"] = str(raw["backend"]).lower()
    if "nms_threshold" in raw:
        kwargs["nms_threshold"] = float(raw["nms_threshold"])
    if "top_k" in raw:
        kwargs["top_k"] = int(raw["top_k"])
    return ModelConfig(**kwargs)


def _build_detection_config(raw: dict) -> DetectionConfig:
    """Build DetectionConfig from a raw YAML dict."""
    kwargs = {}
    if "confidence_threshold" in raw:
        kwargs["confidence_threshold"] = float(raw["confidence_threshold"])
    if "scale_factor" in raw:
        kwargs["scale_factor"] = float(raw["scale_factor"])
    if "cascade_scale_factor" in raw:
        kwargs["cascade_scale_factor"] = float(raw["cascade_scale_factor"])
    if "min_neighbors" in raw:
        kwargs["min_neighbors"] = int(raw["min_neighbors"])
    if "min_size" in raw:
        kwargs["min_size"] = int(raw["min_size"])
    return DetectionConfig(**kwargs)


def _build_redaction_config(raw: dict) -> RedactionConfig:
    """Build RedactionConfig from a raw YAML dict."""
    kwargs = {}
    if "policy" in raw:
        kwargs["policy"] = str(raw["policy"]).lower()
    if "blur_strength" in raw:
        kwargs["blur_strength"] = int(raw["blur_strength"])
    if "adaptive_kernel" in raw:
        kwargs["adaptive_kernel"] = _parse_bool(raw["adaptive_kernel"])
    if "outline_color" in raw:
        kwargs["outline_color"] = _parse_tuple(raw["outline_color"], 3, int)
    if "outline_thickness" in raw:
        kwargs["outline_thickness"] = int(raw["outline_thickness"])
    return RedactionConfig(**kwargs)


def _build_display_config(raw: dict) -> DisplayConfig:
    """Build DisplayConfig from a raw YAML dict."""
    kwargs = {}
    if "enabled" in raw:
        kwargs["enabled"] = _parse_bool(raw["enabled"])
    if "window_name" in raw:
        kwargs["window_name"] = str(raw["window_name"])
    if "show_stats" in raw:
        kwargs["show_stats"] = _parse_bool(raw["show_stats"])
    if "quit_key" in raw:
        key = raw["quit_key"]
        # Accept a single character ('q') as well as a key code (113)
        if isinstance(key, str) and len(key) == 1 and not key.isdigit():
            kwargs["quit_key"] = ord(key)
        else:
            kwargs["quit_key"] = int(key)
    if "wait_ms" in raw:
        kwargs["wait_ms"] = int(raw["wait_ms"])
    return DisplayConfig(**kwargs)


def _build_output_config(raw: dict) -> OutputConfig:
    """Build OutputConfig from a raw YAML dict."""
    kwargs = {}
    if "record" in raw:
        kwargs["record"] = _parse_bool(raw["record"])
    if "video_path" in raw:
        kwargs["video_path"] = str(raw["video_path"])
    if "fourcc" in raw:
        kwargs["fourcc"] = str(raw["fourcc"])
    if "fps" in raw:
        kwargs["fps"] = float(raw["fps"])
    if "log_path" in raw:
        val = raw["log_path"]
        kwargs["log_path"] = str(val) if val is not None else None
    return OutputConfig(**kwargs)


def _build_pipeline_config(raw: dict) -> PipelineConfig:
    """Build PipelineConfig from a raw YAML dict."""
    kwargs = {}
    if "max_consecutive_misses" in raw:
        kwargs["max_consecutive_misses"] = int(raw["max_consecutive_misses"])
    if "max_consecutive_failures" in raw:
        kwargs["max_consecutive_failures"] = int(raw["max_consecutive_failures"])
    if "frame_budget_ms" in raw:
        kwargs["frame_budget_ms"] = float(raw["frame_budget_ms"])
    if "log_interval" in raw:
        kwargs["log_interval"] = int(raw["log_interval"])
    return PipelineConfig(**kwargs)


# ---------------------------------------------------------------------------
# Environment variable overrides
# ---------------------------------------------------------------------------

_ENV_PREFIX = "FACE_REDACT_"


def _apply_env_overrides(raw: dict) -> dict:
    """Apply environment variable overrides to the raw config dict.

    Environment variables follow the pattern:
        FACE_REDACT_MODEL_DETECTOR=cascade
        FACE_REDACT_DETECTION_CONFIDENCE_THRESHOLD=0.8

    The variable name maps to the nested config key as
    FACE_REDACT_<SECTION>_<FIELD>.
    """
    env_map = {
        f"{_ENV_PREFIX}CAPTURE_SOURCE": ("capture", "source"),
        f"{_ENV_PREFIX}CAPTURE_WIDTH": ("capture", "width"),
        f"{_ENV_PREFIX}CAPTURE_HEIGHT": ("capture", "height"),
        f"{_ENV_PREFIX}MODEL_DETECTOR": ("model", "detector"),
        f"{_ENV_PREFIX}MODEL_YUNET_PATH": ("model", "yunet_path"),
        f"{_ENV_PREFIX}MODEL_CASCADE_PATHS": ("model", "cascade_paths"),
        f"{_ENV_PREFIX}MODEL_BACKEND": ("model", "backend"),
        f"{_ENV_PREFIX}DETECTION_CONFIDENCE_THRESHOLD": ("detection", "confidence_threshold"),
        f"{_ENV_PREFIX}DETECTION_SCALE_FACTOR": ("detection", "scale_factor"),
        f"{_ENV_PREFIX}REDACTION_POLICY": ("redaction", "policy"),
        f"{_ENV_PREFIX}REDACTION_BLUR_STRENGTH": ("redaction", "blur_strength"),
        f"{_ENV_PREFIX}DISPLAY_ENABLED": ("display", "enabled"),
        f"{_ENV_PREFIX}OUTPUT_RECORD": ("output", "record"),
        f"{_ENV_PREFIX}OUTPUT_VIDEO_PATH": ("output", "video_path"),
        f"{_ENV_PREFIX}OUTPUT_LOG_PATH": ("output", "log_path"),
    }

    for env_var, (section, key) in env_map.items():
        value = os.environ.get(env_var)
        if value is not None:
            raw.setdefault(section, {})[key] = value
            logger.debug("Config override from env: %s=%s", env_var, value)

    return raw


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------

def load_config(config_path: Optional[str] = None) -> AppConfig:
    """Load and validate application configuration.

    Precedence (highest → lowest):
        Environment variables > YAML file > Hard-coded defaults

    Args:
        config_path: Path to a YAML configuration file. If None,
                     the system runs entirely on defaults.

    Returns:
        A validated, frozen AppConfig instance.

    Raises:
        FileNotFoundError: If config_path is provided but does not exist.
        ValueError: If any configuration value is invalid.
        yaml.YAMLError: If the YAML file is malformed.
    """
    raw: dict = {}

    # --- Layer 1: YAML file ---
    if config_path is not None:
        resolved = resolve_path(config_path)

        if not resolved.is_file():
            raise FileNotFoundError(
                f"Configuration file not found: {resolved}. "
                f"Provide a valid path or omit to use defaults."
            )

        logger.info("Loading config from: %s", resolved)
        with open(resolved, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

    # --- Layer 2: Environment variable overrides ---
    raw = _apply_env_overrides(raw)

    # --- Build typed configs ---
    config = AppConfig(
        capture=_build_capture_config(raw.get("capture", {})),
        model=_build_model_config(raw.get("model", {})),
        detection=_build_detection_config(raw.get("detection", {})),
        redaction=_build_redaction_config(raw.get("redaction", {})),
        display=_build_display_config(raw.get("display", {})),
        output=_build_output_config(raw.get("output", {})),
        pipeline=_build_pipeline_config(raw.get("pipeline", {})),
    )

    # --- Validate ---
    _validate(config)

    logger.debug("Configuration loaded: %s", config)
    return config


def apply_overrides(config: AppConfig, **sections: dict) -> AppConfig:
    """Return a copy of config with selected fields replaced, re-validated.

    Used for the CLI layer, which sits above environment and YAML.
    Keys are section names; values map field names to new values.
    None values are ignored so unset CLI flags fall through.

    Example:
        apply_overrides(config, detection={"confidence_threshold": 0.8})
    """
    updates = {}
    for section, values in sections.items():
        current = getattr(config, section)
        changes = {k: v for k, v in values.items() if v is not None}
        if changes:
            updates[section] = dataclasses.replace(current, **changes)

    if not updates:
        return config

    updated = dataclasses.replace(config, **updates)
    _validate(updated)
    return updated
