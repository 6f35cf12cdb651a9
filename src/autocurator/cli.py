# Copyright 2023 ACCESS-NRI and contributors. See the top-level COPYRIGHT file for details.
# SPDX-License-Identifier: Apache-2.0

"""Command line interface for autocurator"""

import argparse
import logging
import os
from collections.abc import Sequence

from . import DEFAULT_FILE_PATTERN, __version__
from .catalog import CatalogError
from .catalog.manager import Catalog
from .utils import ProgressReporter, load_config_yaml

RANK_ENVIRONMENT_VARIABLES = [
    "OMPI_COMM_WORLD_RANK",
    "PMI_RANK",
    "PMIX_RANK",
    "SLURM_PROCID",
]

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def is_primary_process() -> bool:
    """
    Is this the rank 0 process of an MPI job (or not part of one at all)?
    """
    for var in RANK_ENVIRONMENT_VARIABLES:
        rank = os.environ.get(var)
        if rank is not None:
            try:
                return int(rank) == 0
            except ValueError:
                continue
    return True


def _make_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="autocurator",
        description=(
            "Build a deduplicated catalog of the axes and variables spread across a "
            "collection of netCDF files, and write it as JSON and/or CDML-style XML."
        ),
    )

    parser.add_argument(
        "--path",
        type=str,
        default=None,
        help="Directory containing the netCDF files to index, or a single netCDF file.",
    )

    parser.add_argument(
        "--ext",
        type=str,
        default=DEFAULT_FILE_PATTERN,
        help=f"Glob pattern used to select files within --path. Defaults to '{DEFAULT_FILE_PATTERN}'.",
    )

    parser.add_argument(
        "--recurse",
        default=False,
        action="store_true",
        help="Search sub-directories of --path.",
    )

    parser.add_argument(
        "--in_json",
        type=str,
        default=None,
        help="Load an existing JSON catalog instead of scanning files.",
    )

    parser.add_argument(
        "--out_xml",
        type=str,
        default=None,
        help="Write the catalog to this file as CDML-style XML.",
    )

    parser.add_argument(
        "--out_json",
        type=str,
        default=None,
        help="Write the catalog to this file as JSON.",
    )

    parser.add_argument(
        "--out_pretty",
        default=False,
        action="store_true",
        help="Indent the JSON output.",
    )

    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help=(
            "YAML file providing defaults for any of the options above, keyed by option "
            "name. Options given on the command line take precedence."
        ),
    )

    parser.add_argument(
        "--log_level",
        type=str.upper,
        default="INFO",
        choices=LOG_LEVELS,
        help="Logging level. Defaults to INFO.",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    return parser


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    """
    Parse the command line, taking defaults from the --config file if given
    """
    parser = _make_parser()
    args = parser.parse_args(argv)

    if args.config is not None:
        try:
            config = load_config_yaml(args.config)
        except (OSError, ValueError) as e:
            parser.error(f"Unable to read configuration file {args.config}: {e}")

        unknown = sorted(set(config) - set(vars(args)))
        if unknown:
            parser.error(
                f"Unknown option(s) in configuration file {args.config}: {', '.join(unknown)}"
            )
        config.pop("config", None)

        parser.set_defaults(**config)
        args = parser.parse_args(argv)

    if (args.path is None) == (args.in_json is None):
        parser.error("Exactly one of --path or --in_json must be given")

    return args


def build(argv: Sequence[str] | None = None) -> int:
    """
    Build a catalog from netCDF files (or load one from JSON) and write it out.
    """
    args = _parse_args(argv)

    log_fmt = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    logging.basicConfig(level=getattr(logging, args.log_level), format=log_fmt)
    logger = logging.getLogger(__name__)

    reporter = ProgressReporter(is_primary=is_primary_process(), logger=logger)

    try:
        if args.in_json is not None:
            reporter("Loading catalog from %s", args.in_json)
            catalog = Catalog.from_json_file(args.in_json)
        else:
            reporter("Scanning %s for files matching %s", args.path, args.ext)
            catalog = Catalog().populate_from_path(
                args.path, pattern=args.ext, recurse=args.recurse, reporter=reporter
            )

        if args.out_xml is not None:
            reporter("Writing XML catalog to %s", args.out_xml)
            catalog.to_xml_file(args.out_xml)

        if args.out_json is not None:
            reporter("Writing JSON catalog to %s", args.out_json)
            catalog.to_json_file(args.out_json, pretty_print=args.out_pretty)

    except CatalogError as e:
        logger.error(str(e))
        return 1

    return 0
