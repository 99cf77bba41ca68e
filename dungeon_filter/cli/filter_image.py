import os
import sys
import logging
import argparse
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

from ..models.errors import DungeonFilterError
from ..models.threshold_engine import ThresholdFilterEngine
from ..pipeline.apply_filter import filter_file
from ..services.export_service import ExportService
from ..services.filter_service import FilterService, parse_threshold
from ..services.image_service import ImageService

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dungeon-filter",
        description="Render an image as neon green on black using a luminance threshold.",
    )
    parser.add_argument("input", type=Path, nargs="?", help="image to filter")
    group = parser.add_mutually_exclusive_group()
    group.add_argument("-t", "--threshold", help="luminance cutoff in [0, 255]")
    group.add_argument("-p", "--preset", help="named threshold preset")
    parser.add_argument("-o", "--output", type=Path,
                        help="PNG to write (default: <prefix>-<timestamp>.png)")
    parser.add_argument("--list-presets", action="store_true", help="print presets and exit")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    # --- Centralized Logging Configuration ---
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
        datefmt='%H:%M:%S'
    )

    filter_service = FilterService()
    if args.list_presets:
        for name, value in filter_service.presets.items():
            print(f"{name}: {value}")
        return 0
    if args.input is None:
        parser.error("an input image is required")

    image_service = ImageService()
    if not image_service.is_supported(args.input):
        logger.error(f"Unsupported file type: {args.input.suffix or args.input.name}")
        return 1

    try:
        if args.preset is not None:
            if args.preset.lower() not in filter_service.presets:
                logger.error(f"Unknown preset '{args.preset}'. "
                             f"Available: {', '.join(filter_service.presets)}")
                return 2
            threshold = filter_service.presets[args.preset.lower()]
        elif args.threshold is not None:
            threshold = parse_threshold(args.threshold)
        else:
            threshold = filter_service.threshold

        output = args.output or Path(ExportService().default_filename())
        saved = filter_file(args.input, output, engine=ThresholdFilterEngine(threshold),
                            image_service=image_service)
    except FileNotFoundError as err:
        logger.error(str(err))
        return 1
    except DungeonFilterError as err:
        logger.error(f"{err.error_code}: {err.message}")
        return 1

    print(os.fspath(saved))
    return 0


if __name__ == "__main__":
    sys.exit(main())
