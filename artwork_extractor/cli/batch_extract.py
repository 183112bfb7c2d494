import argparse
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

from ..errors import DecodeError
from ..models.extraction_config import MattingConfig, get_preset
from ..services.extraction_service import ExtractionService
from ..services.raster_service import RasterService

logger = logging.getLogger("artwork_extractor.cli")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="artwork-extract",
        description="Extract artwork from mockup composites into transparent PNGs.",
    )
    parser.add_argument("input", type=Path, help="composite image or folder of composites")
    parser.add_argument("-o", "--output", type=Path, default=Path(os.getenv("EXTRACTED_DIR_PATH", "data/extracted")),
                        help="output folder (default: %(default)s)")
    parser.add_argument("-b", "--base", type=Path, default=None,
                        help="blank base mockup; without it the checkerboard path is used")
    parser.add_argument("-t", "--tolerance", type=float, default=float(os.getenv("MATTING_TOLERANCE", "30")),
                        help="colour tolerance for the diff path (default: %(default)s)")
    parser.add_argument("--preset", default=os.getenv("FILTER_PRESET", "permissive"),
                        help="component filter preset for the diff path: permissive | strict")
    parser.add_argument("-r", "--recursive", action="store_true", help="descend into sub-folders")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)

    # --- Centralized Logging Configuration ---
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
        datefmt='%H:%M:%S'
    )

    raster_service = RasterService()
    extraction_service = ExtractionService(
        matting_config=MattingConfig(tolerance=args.tolerance),
        diff_preset=get_preset(args.preset),
    )

    base = raster_service.load(args.base) if args.base else None

    if args.input.is_dir():
        composites = raster_service.stream_folder(args.input, recursive=args.recursive)
    else:
        composites = iter([raster_service.load(args.input)])

    processed = 0
    for composite in composites:
        extracted = extraction_service.extract(composite, base)
        extracted.path = args.output / f"{Path(composite.path).stem}.png"
        raster_service.save(extracted)
        processed += 1
        logger.info(
            f"{Path(composite.path).name} → {extracted.path} "
            f"({extracted.width}x{extracted.height}, {extraction_service.coverage(extracted):.1%} visible)"
        )

    logger.info(f"Extraction complete: {processed} image(s) written to {args.output}")
    return 0 if processed else 1


def run() -> None:
    try:
        sys.exit(main())
    except (DecodeError, FileNotFoundError, NotADirectoryError) as err:
        logger.error(str(err))
        sys.exit(2)


if __name__ == "__main__":
    run()
