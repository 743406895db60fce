#!/usr/bin/env python3
"""
labelmesh - Command line entry point

Reconstruct one surface per label of a NIfTI mask and export the union.

Usage:
    labelmesh mask.nii.gz                      # → mask.vtp (attributed)
    labelmesh mask.nii.gz out.stl 8            # plain STL, 8 threads
    labelmesh mask.nii.gz out.vtp --no-decimate --report report.json
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .builder import MeshBuilder
from .config import ReconstructionConfig
from .errors import LabelMeshError
from .volume import load_volume

logger = logging.getLogger(__name__)


def default_output_path(input_path: Path) -> Path:
    """mask.nii.gz → mask.vtp, next to the input."""
    name = input_path.name
    for suffix in (".nii.gz", ".nii"):
        if name.endswith(suffix):
            return input_path.with_name(name[:-len(suffix)] + ".vtp")
    return input_path.with_suffix(".vtp")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="labelmesh",
        description="Reconstruct per-label surfaces from a segmentation mask"
    )
    parser.add_argument(
        "input",
        type=Path,
        help="Labeled mask volume (.nii / .nii.gz)"
    )
    parser.add_argument(
        "output",
        type=Path,
        nargs="?",
        default=None,
        help="Output mesh (.vtp keeps labels, .stl drops them). Default: <input>.vtp"
    )
    parser.add_argument(
        "threads",
        type=int,
        nargs="?",
        default=0,
        help="Worker threads (0 = automatic)"
    )
    parser.add_argument(
        "--plain",
        action="store_true",
        help="Write geometry only (binary STL) regardless of suffix"
    )
    parser.add_argument(
        "--config", "-c",
        type=Path,
        help="JSON reconstruction config"
    )
    parser.add_argument(
        "--no-smooth",
        action="store_true",
        help="Skip windowed-sinc smoothing"
    )
    parser.add_argument(
        "--no-decimate",
        action="store_true",
        help="Skip decimation"
    )
    parser.add_argument(
        "--keep-fraction",
        type=float,
        default=None,
        help="Fraction of triangles kept by decimation (0-1]"
    )
    parser.add_argument(
        "--report",
        type=Path,
        help="Write a JSON build/export report here"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose logging"
    )
    return parser


def load_config(args: argparse.Namespace) -> ReconstructionConfig:
    config = ReconstructionConfig.from_json(args.config) if args.config else ReconstructionConfig()
    if args.no_smooth:
        config.smoothing.enabled = False
    if args.no_decimate:
        config.decimation.enabled = False
    if args.keep_fraction is not None:
        config.decimation.keep_fraction = args.keep_fraction
    config.threads = args.threads
    return config.validate()


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    # Setup logging
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    try:
        config = load_config(args)
    except (OSError, ValueError, TypeError) as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    output = args.output or default_output_path(args.input)

    logger.info(f"Reading NIfTI mask: {args.input}")
    try:
        volume = load_volume(args.input)
    except LabelMeshError as e:
        logger.error(str(e))
        return 1

    builder = MeshBuilder(config)
    build_report = builder.build(volume)

    export_result = builder.export(output, plain=True if args.plain else None)

    if args.report:
        summary = {
            "input": str(args.input),
            "config": config.to_dict(),
            "build": build_report.to_dict(),
            "export": export_result.to_dict()
        }
        args.report.parent.mkdir(parents=True, exist_ok=True)
        with open(args.report, 'w') as f:
            json.dump(summary, f, indent=2)
        logger.info(f"Report saved to: {args.report}")

    if not build_report.ok or not export_result.ok:
        logger.error(f"Failed to export: {output}")
        return 1

    logger.info(f"Exported: {output}")
    logger.info(f"Total label meshes: {export_result.n_meshes}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
