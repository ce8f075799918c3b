"""
Model loading for the face redaction pipeline.

Responsibility:
    Resolve detector model files, load them through OpenCV, configure the
    compute backend, and return ready-to-run detector handles.

Non-goals:
    - No preprocessing, inference, or frame-level logic.
    - No automatic model downloading.
    - No fallback from one detector variant to the other.

Failure behavior:
    - Missing model files raise DetectorInitError with the exact
      missing path and expected location.
    - Files OpenCV cannot parse raise DetectorInitError.
"""

import logging
from pathlib import Path
from typing import List, Tuple

import cv2

from redactor.config import ModelConfig, resolve_path
from redactor.errors import DetectorInitError

logger = logging.getLogger(__name__)


def _resolve_cascade(path: str) -> Path:
    """Find a cascade file under the project root or OpenCV's bundled data."""
    resolved = resolve_path(path)
    if resolved.is_file():
        return resolved

    # Bare names like 'haarcascade_frontalface_alt.xml' ship with opencv-python
    if not Path(path).is_absolute():
        bundled = Path(cv2.data.haarcascades) / path
        if bundled.is_file():
            return bundled

    raise DetectorInitError(
        f"Cascade file not found.\n"
        f"  Expected: {resolved}\n"
        f"  Provide the file or update 'model.cascade_paths' in your config."
    )


def load_cascades(config: ModelConfig) -> List[cv2.CascadeClassifier]:
    """Load every configured cascade classifier, in configured order.

    Args:
        config: ModelConfig listing cascade file paths.

    Returns:
        Loaded classifiers, ready for detectMultiScale().

    Raises:
        DetectorInitError: If a file is missing or not a valid cascade.
    """
    classifiers = []
    for name in config.cascade_paths:
        path = _resolve_cascade(name)
        logger.info("Loading cascade: %s", path)
        classifier = cv2.CascadeClassifier(str(path))
        if classifier.empty():
            raise DetectorInitError(
                f"Failed to load cascade classifier from {path}. "
                f"The file exists but is not a valid cascade XML."
            )
        classifiers.append(classifier)

    logger.info("Loaded %d cascade(s).", len(classifiers))
    return classifiers


def _backend_and_target(backend: str) -> Tuple[int, int]:
    """Map the configured compute backend to OpenCV DNN constants."""
    if backend == "cuda":
        logger.info("Using CUDA backend and target.")
        return cv2.dnn.DNN_BACKEND_CUDA, cv2.dnn.DNN_TARGET_CUDA
    logger.info("Using CPU backend.")
    return cv2.dnn.DNN_BACKEND_OPENCV, cv2.dnn.DNN_TARGET_CPU


def load_yunet(
    config: ModelConfig,
    input_size: Tuple[int, int],
    score_threshold: float,
) -> cv2.FaceDetectorYN:
    """Load and configure the YuNet face detector.

    Args:
        config: ModelConfig with the model path, NMS and backend settings.
        input_size: (width, height) of the images detection will run on.
        score_threshold: Minimum score YuNet itself keeps.

    Returns:
        A configured cv2.FaceDetectorYN.

    Raises:
        DetectorInitError: If the model file is missing or cannot be loaded
                           with the requested backend.
    """
    model = resolve_path(config.yunet_path)

    # Validate file existence — fail fast with actionable messages
    if not model.is_file():
        raise DetectorInitError(
            f"YuNet model not found.\n"
            f"  Expected: {model}\n"
            f"  Download the .onnx file and place it at the path above,\n"
            f"  or update 'model.yunet_path' in your config."
        )

    backend_id, target_id = _backend_and_target(config.backend)

    logger.info("Loading YuNet model: %s (input_size=%s)", model, input_size)
    try:
        detector = cv2.FaceDetectorYN.create(
            str(model),
            "",
            input_size,
            score_threshold,
            config.nms_threshold,
            config.top_k,
            backend_id,
            target_id,
        )
    except cv2.error as e:
        raise DetectorInitError(
            f"Failed to create YuNet detector from {model}. Ensure the file is a "
            f"valid model and, for 'cuda', that OpenCV was built with CUDA support.\n"
            f"  OpenCV error: {e}"
        ) from e

    logger.info("Model loaded successfully.")
    return detector
