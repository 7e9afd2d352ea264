"""CLI entry point."""
import argparse
import logging
import signal
import sys
from typing import Sequence, Optional

from echovision.core import config
from echovision.core.settings import Settings

logger = logging.getLogger(__name__)


def setup_logging(debug: bool = False) -> None:
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def signal_handler(signum, _frame):
    logger.info("Received signal %s, shutting down", signum)
    sys.exit(0)


def speech_rate(value: str) -> float:
    rate = float(value)
    if not 0.3 <= rate <= 0.7:
        raise argparse.ArgumentTypeError("speech rate must be between 0.3 and 0.7")
    return rate


def parse_arguments(argv: Optional[Sequence[str]] = None):
    parser = argparse.ArgumentParser(
        description="EchoVision - spoken description of your surroundings",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Start with the default camera
    python -m echovision

    # Use a different camera with audio disabled
    python -m echovision --camera 1 --no-audio

    # Announce approximate distances (needs the 'advanced' extra)
    python -m echovision --depth
        """
    )

    parser.add_argument(
        "--camera",
        type=int,
        default=config.DEFAULT_CAMERA_INDEX,
        help=f"Camera device index (default: {config.DEFAULT_CAMERA_INDEX})",
    )
    parser.add_argument(
        "--no-audio",
        dest="audio",
        action="store_false",
        help="Disable audio feedback",
    )
    parser.add_argument(
        "--enable-obstacles",
        dest="obstacles",
        action="store_true",
        default=config.OBSTACLE_DETECTOR_ENABLED,
        help="Run the indoor obstacle detector",
    )
    parser.add_argument(
        "--depth",
        action="store_true",
        default=config.DEPTH_ENABLED,
        help="Estimate object distances with a depth model",
    )
    parser.add_argument(
        "--speech-rate",
        type=speech_rate,
        default=config.SPEECH_RATE,
        help=f"Speech rate between 0.3 and 0.7 (default: {config.SPEECH_RATE})",
    )
    parser.add_argument(
        "--no-distance",
        dest="announce_distance",
        action="store_false",
        default=config.ANNOUNCE_DISTANCE,
        help="Do not announce distances",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    return parser.parse_args(argv)


def main():
    args = parse_arguments()
    setup_logging(args.debug)
    signal.signal(signal.SIGINT, signal_handler)
    if hasattr(signal, "SIGTERM"):
        signal.signal(signal.SIGTERM, signal_handler)
    logger.info("Starting EchoVision (camera=%s, audio=%s)", args.camera, args.audio)
    try:
        from echovision.controller import NarrationController

        controller = NarrationController(
            camera_index=args.camera,
            audio_enabled=args.audio,
            obstacles_enabled=args.obstacles,
            depth_enabled=args.depth,
            settings=Settings(speech_rate=args.speech_rate, announce_distance=args.announce_distance),
        )
        controller.run()
    except Exception:  # noqa: BLE001
        logger.exception("Fatal error")
        return 1
    logger.info("EchoVision stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
