import argparse
import sys
import logging
from pathlib import Path
from typing import List, Optional

import polars as pl

from rastercombine.exceptions import RasterCombineError
from rastercombine.raster import CombineConfig, combine, value_count

def setup_logging(level: int = logging.INFO) -> None:
    """
    Configures the standard logging format and level for the command-line interface.

    Args:
        level (int): The logging threshold level.
    """
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

def write_table(df: pl.DataFrame, csv_path: Optional[str] = None) -> None:
    """
    Writes a result table as CSV to the given path, or to standard output when no path is given.
    """
    if csv_path:
        Path(csv_path).parent.mkdir(parents=True, exist_ok=True)
        df.write_csv(csv_path)
        logging.info(f"Wrote {len(df)} rows to {csv_path}")
    else:
        sys.stdout.write(df.write_csv())

def run_combine(args: argparse.Namespace) -> None:
    """
    Overlays the input rasters and reports the table of unique combinations sorted by id.

    Args:
        args (argparse.Namespace): Parsed arguments of the 'combine' subcommand.
    """
    config = CombineConfig(
        dst_path=args.dst,
        driver=args.driver,
        dtype=args.dtype,
        creation_options=args.co,
        rows_per_chunk=args.rows,
        quiet=args.quiet
    )

    try:
        df = combine(args.files, var_names=args.names, bands=args.bands, config=config)
    except (RasterCombineError, FileNotFoundError) as e:
        logging.error(f"combine failed: {e}")
        sys.exit(1)

    write_table(df.sort("id"), args.csv)

def run_value_count(args: argparse.Namespace) -> None:
    """
    Counts the unique pixel values of one raster band.

    Args:
        args (argparse.Namespace): Parsed arguments of the 'value-count' subcommand.
    """
    try:
        df = value_count(args.file, band=args.band, quiet=args.quiet)
    except (RasterCombineError, FileNotFoundError) as e:
        logging.error(f"value-count failed: {e}")
        sys.exit(1)

    write_table(df, args.csv)

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rastercombine",
        description="Raster overlay for unique combinations of pixel values"
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enables debug logging."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    cmb_parser = subparsers.add_parser(
        "combine",
        help="Assigns an id to each unique combination of values across aligned rasters."
    )
    cmb_parser.add_argument(
        "files",
        nargs="+",
        help="Input rasters. Repeat a filename to combine several of its bands."
    )
    cmb_parser.add_argument(
        "--names",
        nargs="+",
        default=None,
        help="Variable name for each input. Defaults to the file names."
    )
    cmb_parser.add_argument(
        "--bands",
        nargs="+",
        type=int,
        default=None,
        help="Band number for each input. Defaults to band 1."
    )
    cmb_parser.add_argument(
        "--dst",
        default=None,
        help="Output raster of combination ids."
    )
    cmb_parser.add_argument(
        "--driver",
        default=None,
        help="GDAL format of the output raster. Inferred from --dst when omitted."
    )
    cmb_parser.add_argument(
        "--dtype",
        default="uint32",
        help="Data type of the output raster. Defaults to uint32."
    )
    cmb_parser.add_argument(
        "--co",
        nargs="+",
        default=None,
        metavar="NAME=VALUE",
        help="Creation options of the output raster, e.g. COMPRESS=LZW."
    )
    cmb_parser.add_argument(
        "--rows",
        type=int,
        default=None,
        help="Scan-lines read per call. Sized from available memory when omitted."
    )
    cmb_parser.add_argument(
        "--csv",
        default=None,
        help="Writes the combination table to this CSV file instead of standard output."
    )
    cmb_parser.add_argument(
        "--quiet",
        action="store_true",
        help="Hides the progress bar."
    )

    vc_parser = subparsers.add_parser(
        "value-count",
        help="Counts the unique pixel values of a raster band."
    )
    vc_parser.add_argument("file", help="Input raster.")
    vc_parser.add_argument(
        "--band",
        type=int,
        default=1,
        help="Band number. Defaults to 1."
    )
    vc_parser.add_argument(
        "--csv",
        default=None,
        help="Writes the value counts to this CSV file instead of standard output."
    )
    vc_parser.add_argument(
        "--quiet",
        action="store_true",
        help="Hides the progress bar."
    )
    return parser

def main(argv: Optional[List[str]] = None) -> None:
    """
    Parses command-line arguments and routes execution to the appropriate subcommand.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    if args.command == "combine":
        run_combine(args)
    elif args.command == "value-count":
        run_value_count(args)

if __name__ == "__main__":
    main()
