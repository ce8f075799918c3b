"""
Face Redactor CLI Entrypoint.

Responsibility:
    Parse command-line arguments, configure the application, open the
    capture, detector, display, and output sinks, run the redaction loop,
    and release everything on every exit path.

Usage:
    python main.py                                   # Webcam 0, YuNet, blur
    python main.py --detector cascade --policy outline
    python main.py --source clip.mp4 --record output/clip_redacted.mp4 --no-display
    python main.py --config my_config.yaml

Exit codes:
    0  Clean quit (quit key, end of video, or Ctrl-C).
    1  Configuration or startup failure.
    2  Fatal failure while the loop was running.

This module is the executable entry point. It should not be imported
by other modules.
"""

import argparse
import logging
import sys

# Configure logging before importing local modules
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("main")

from redactor.capture import CaptureSource
from redactor.config import apply_overrides, load_config
from redactor.detector import create_detector
from redactor.display import Window
from redactor.errors import RedactorError
from redactor.pipeline import FramePipeline, RedactionLoop
from redactor.recorder import RedactionLog, VideoRecorder

EXIT_OK = 0
EXIT_STARTUP_FAILURE = 1
EXIT_RUNTIME_FAILURE = 2


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Face Redactor — real-time face blurring",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Path to YAML configuration file.",
    )
    parser.add_argument(
        "--source",
        type=str,
        help="Capture source: device index (e.g. '0') or video file path.",
    )
    parser.add_argument("--width", type=int, help="Capture width. Overrides config.")
    parser.add_argument("--height", type=int, help="Capture height. Overrides config.")
    parser.add_argument(
        "--detector",
        type=str,
        choices=["yunet", "cascade"],
        help="Detector variant. Overrides config.",
    )
    parser.add_argument(
        "--backend",
        type=str,
        choices=["cpu", "cuda"],
        help="Compute backend for the neural detector. Overrides config.",
    )
    parser.add_argument(
        "--policy",
        type=str,
        choices=["blur", "outline"],
        help="Redaction policy. Overrides config.",
    )
    parser.add_argument(
        "--confidence",
        type=float,
        help="Detection confidence threshold (0.0 - 1.0). Overrides config.",
    )
    parser.add_argument(
        "--scale-factor",
        type=float,
        help="Detection resolution relative to capture, 1/n (1.0, 0.5, 0.25, ...). Overrides config.",
    )
    parser.add_argument(
        "--record",
        type=str,
        metavar="PATH",
        help="Record redacted frames to this video file. Overrides config.",
    )
    parser.add_argument(
        "--log",
        type=str,
        metavar="PATH",
        help="Write redacted regions to a .json or .csv file. Overrides config.",
    )
    parser.add_argument(
        "--no-display",
        action="store_true",
        help="Run without a window (quit with Ctrl-C or at end of video).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace):
    """Load configuration and layer CLI overrides on top."""
    config = load_config(args.config)

    output_overrides = {"log_path": args.log}
    if args.record is not None:
        output_overrides.update(record=True, video_path=args.record)

    return apply_overrides(
        config,
        capture={"source": args.source, "width": args.width, "height": args.height},
        model={"detector": args.detector, "backend": args.backend},
        detection={
            "confidence_threshold": args.confidence,
            "scale_factor": args.scale_factor,
        },
        redaction={"policy": args.policy},
        display={"enabled": False if args.no_display else None},
        output=output_overrides,
    )


def main(argv=None) -> int:
    """Main execution loop."""
    args = parse_args(argv)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    # 1. Load Configuration (CLI args > ENV > YAML > Defaults)
    try:
        config = build_config(args)
        logger.info(
            "Configuration active: detector=%s, policy=%s, capture=%dx%d.",
            config.model.detector,
            config.redaction.policy,
            config.capture.width,
            config.capture.height,
        )
    except Exception as e:
        logger.error("Configuration error: %s", e)
        return EXIT_STARTUP_FAILURE

    capture = None
    window = None
    recorder = None
    redaction_log = None
    loop = None

    try:
        # 2. Initialize Components
        try:
            detector = create_detector(config)
            capture = CaptureSource(
                config.capture.source, config.capture.width, config.capture.height
            )
            frame_width, frame_height = capture.frame_size

            if config.output.record:
                recorder = VideoRecorder(
                    config.output.video_path,
                    config.output.fourcc,
                    config.output.fps,
                    (frame_width, frame_height),
                )
            if config.output.log_path is not None:
                redaction_log = RedactionLog(config.output.log_path)
            if config.display.enabled:
                window = Window(
                    config.display.window_name,
                    frame_width,
                    frame_height,
                    show_stats=config.display.show_stats,
                )
        except RedactorError as e:
            logger.error("Startup failed at %s: %s", e.stage, e)
            return EXIT_STARTUP_FAILURE
        except Exception as e:
            logger.exception("Unexpected initialization error: %s", e)
            return EXIT_STARTUP_FAILURE

        # 3. Processing Loop
        loop = RedactionLoop(
            capture,
            FramePipeline(detector, config),
            config,
            display=window,
            recorder=recorder,
            redaction_log=redaction_log,
        )
        if window is not None:
            logger.info("Starting redaction loop. Press '%s' to quit.", chr(config.display.quit_key))
        else:
            logger.info("Starting headless redaction loop. Press Ctrl-C to quit.")

        try:
            loop.run()
        except KeyboardInterrupt:
            logger.info("Interrupted by user.")
        except RedactorError as e:
            logger.error("Pipeline failed at %s: %s", e.stage, e)
            return EXIT_RUNTIME_FAILURE
        except Exception as e:
            logger.exception("Runtime error during processing: %s", e)
            return EXIT_RUNTIME_FAILURE

    finally:
        # 4. Cleanup
        if redaction_log is not None:
            try:
                redaction_log.close()
            except OSError as e:
                logger.error("Failed to write redaction log: %s", e)
        if recorder is not None:
            recorder.release()
        if window is not None:
            window.release()
        if capture is not None:
            capture.release()
        if loop is not None:
            logger.info(
                "Processing finished. Frames presented: %d. Dropped: %d.",
                loop.frames_presented, loop.frames_dropped,
            )

    return EXIT_OK


def run() -> None:
    """Console-script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
