"""Command line entry point: grab the objects standing on a table from a stream of frames."""

import argparse
import logging
import sys
from typing import List, Optional

from tabletop_pipeline.data_loader import discover_frames, iter_frames
from tabletop_pipeline.emitter import LoggingPublisher, PcdWriter
from tabletop_pipeline.errors import InvocationError
from tabletop_pipeline.pipeline import PipelineParams, load_params, run_stream

logger = logging.getLogger("tabletop_pipeline")

# exit status for a missing object name and for a finished one-shot capture
USAGE_EXIT_CODE = 2
ONE_SHOT_EXIT_CODE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tabletop-grab",
        description="Segment the table in each frame and emit the objects standing on it.",
    )
    parser.add_argument("object_name", nargs="?", help="base name for saved object clouds")
    parser.add_argument("--frames", nargs="+", default=[], help="frame files or directories (.pcd, .txt, .npy)")
    parser.add_argument("--config", help="YAML file with pipeline parameters")
    parser.add_argument("--output-dir", default=".", help="directory for saved object clouds")
    parser.add_argument("--save", action="store_true", help="save the objects of the first good frame and exit")
    parser.add_argument("--nr-cluster", type=int, help="number of objects expected on the table")
    parser.add_argument("--seed", type=int, help="RANSAC random seed")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


def parse_params(args: argparse.Namespace) -> PipelineParams:
    if not args.object_name:
        raise InvocationError("usage: tabletop-grab <object_name>")

    overrides = {
        "object_name": args.object_name,
        "nr_cluster": args.nr_cluster,
        "seed": args.seed,
        "save_to_files": True if args.save else None,
    }
    if args.config:
        return load_params(args.config, **overrides)
    return PipelineParams.from_dict({key: value for key, value in overrides.items() if value is not None})


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        params = parse_params(args)
    except InvocationError as exc:
        logger.error("%s", exc)
        return USAGE_EXIT_CODE

    frames = iter_frames(discover_frames(args.frames))
    writer = PcdWriter(args.output_dir) if params.save_to_files else None

    processed = 0
    for result in run_stream(frames, params, publisher=LoggingPublisher(), writer=writer):
        processed += 1
        if result.last_frame:
            return ONE_SHOT_EXIT_CODE

    logger.info("Processed %d frames", processed)
    return 0


if __name__ == "__main__":
    sys.exit(main())
