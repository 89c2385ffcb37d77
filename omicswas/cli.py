"""Command-line interface for omicswas."""

import argparse
import csv
import datetime
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from .association.base import OwasConfig
from .association.models.clogit import CLOGIT_METHODS
from .config import load_config
from .errors import OwasError
from .owas import DIRECTIONS, owas, owas_clogit, owas_mixed, owas_qgcomp
from .version import __version__

logger = logging.getLogger("omicswas")

LOG_LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
}


def read_table(filepath: str) -> pd.DataFrame:
    """
    Read a delimited dataset.

    The delimiter is taken from the extension (.tsv/.tab -> tab,
    .csv -> comma) and sniffed from the first 2 kB otherwise.
    """
    ext = os.path.splitext(filepath)[1].lower()
    if ext in (".tsv", ".tab"):
        sep = "\t"
    elif ext == ".csv":
        sep = ","
    else:
        with open(filepath) as fh:
            sample_text = fh.read(2048)
        try:
            sep = csv.Sniffer().sniff(sample_text).delimiter
        except csv.Error:
            sep = "\t"
        logger.debug(f"Detected delimiter {sep!r} for {filepath}")
    return pd.read_csv(filepath, sep=sep)


def read_feature_list(filepath: str) -> List[str]:
    """Read one feature name per line; blank lines and '#' comments are skipped."""
    with open(filepath) as fh:
        return [line.strip() for line in fh if line.strip() and not line.startswith("#")]


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    general_group = parser.add_argument_group("General Options")
    general_group.add_argument(
        "--log-level",
        choices=list(LOG_LEVEL_MAP),
        default="INFO",
        help="Set the logging level",
    )
    general_group.add_argument(
        "--log-file", help="Path to a file to write logs to (in addition to stderr)."
    )
    general_group.add_argument(
        "-c",
        "--config",
        help="Path to configuration file",
        default=None,
    )

    io_group = parser.add_argument_group("Core Input/Output")
    io_group.add_argument(
        "-i", "--input", required=True, help="Dataset (CSV or TSV, one row per observation)"
    )
    io_group.add_argument("--omics", nargs="+", default=[], help="Omics feature column names")
    io_group.add_argument("--omics-file", help="File with one omics feature name per line")
    io_group.add_argument("--covars", nargs="+", default=None, help="Covariate column names")
    io_group.add_argument(
        "-o",
        "--output-file",
        default=None,
        help="Output TSV file, or '-' for stdout (default: stdout)",
    )

    model_group = parser.add_argument_group("Model Options")
    model_group.add_argument(
        "--confidence-level",
        type=float,
        default=None,
        help="Confidence level for intervals and the marginal threshold (default: 0.95)",
    )
    model_group.add_argument(
        "--conf-int",
        action="store_true",
        default=None,
        help="Report confidence intervals for the estimates",
    )
    model_group.add_argument(
        "--no-quality-check",
        dest="test_data_quality",
        action="store_false",
        default=None,
        help="Skip the zero-variance check before fitting",
    )
    model_group.add_argument(
        "--correction-method",
        choices=["fdr", "bonferroni"],
        default=None,
        help="Multiple testing correction (default: fdr)",
    )
    model_group.add_argument(
        "--failed-pvalue-policy",
        choices=["exclude", "count"],
        default=None,
        help="Leave failed fits out of the correction or count them as p=1 (default: exclude)",
    )
    model_group.add_argument(
        "--workers",
        dest="n_workers",
        type=int,
        default=None,
        help="Worker processes for model fitting; -1 uses all CPUs (default: 1)",
    )


def _add_variable_arguments(parser: argparse.ArgumentParser) -> None:
    group = parser.add_argument_group("Variable of Interest")
    group.add_argument("--var", nargs="+", required=True, help="Variable(s) of interest")
    group.add_argument(
        "--var-exposure-or-outcome",
        choices=list(DIRECTIONS),
        default="exposure",
        help="Model the variable as exposure (feature ~ var) or outcome (var ~ feature)",
    )
    group.add_argument(
        "--family",
        choices=["gaussian", "binomial"],
        default=None,
        help="Model family (default: gaussian)",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create and return the argument parser for the omicswas CLI."""
    parser = argparse.ArgumentParser(
        description="omicswas: omics-wide association studies, one model per feature."
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"omicswas {__version__}",
        help="Show the current version and exit",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    owas_parser = subparsers.add_parser(
        "owas", help="Linear or logistic regression per feature"
    )
    _add_common_arguments(owas_parser)
    _add_variable_arguments(owas_parser)

    mixed_parser = subparsers.add_parser(
        "mixed", help="Random-intercept mixed model per feature (repeated measures)"
    )
    _add_common_arguments(mixed_parser)
    _add_variable_arguments(mixed_parser)
    mixed_parser.add_argument(
        "--groups", required=True, help="Grouping column for the random intercept"
    )

    clogit_parser = subparsers.add_parser(
        "clogit", help="Conditional logistic regression per feature (matched case-control)"
    )
    _add_common_arguments(clogit_parser)
    clogit_group = clogit_parser.add_argument_group("Case-Control Design")
    clogit_group.add_argument("--cc-status", required=True, help="Case-control status column")
    clogit_group.add_argument("--cc-set", required=True, help="Matched set column")
    clogit_group.add_argument(
        "--method",
        choices=list(CLOGIT_METHODS),
        default=None,
        help="Tie handling (default: efron)",
    )

    qgcomp_parser = subparsers.add_parser(
        "qgcomp", help="Quantile g-computation of an exposure mixture per feature"
    )
    _add_common_arguments(qgcomp_parser)
    qgcomp_group = qgcomp_parser.add_argument_group("Mixture")
    qgcomp_group.add_argument(
        "--expnms", nargs="+", required=True, help="Mixture exposure column names"
    )
    qgcomp_group.add_argument(
        "--q", type=int, default=None, help="Quantile bins per exposure (default: 4)"
    )
    qgcomp_group.add_argument(
        "--no-quantize",
        action="store_true",
        help="Use exposures unchanged (required for dichotomous exposures)",
    )
    qgcomp_group.add_argument(
        "--family",
        choices=["gaussian", "binomial"],
        default=None,
        help="Model family (default: gaussian)",
    )
    qgcomp_group.add_argument(
        "--bootstrap", action="store_true", help="Bootstrap marginal structural model estimate"
    )
    qgcomp_group.add_argument(
        "--n-boot", type=int, default=None, help="Bootstrap resamples (default: 200)"
    )
    qgcomp_group.add_argument("--seed", type=int, default=None, help="Bootstrap seed (default: 125)")

    return parser


def _configure_logging(args: argparse.Namespace) -> None:
    logger.setLevel(LOG_LEVEL_MAP[args.log_level])

    if args.log_file:
        log_file_path = Path(args.log_file)
        log_file_path.parent.mkdir(parents=True, exist_ok=True)

        fh = logging.FileHandler(args.log_file)
        fh.setLevel(LOG_LEVEL_MAP[args.log_level])
        fh.setFormatter(
            logging.Formatter(
                "%(asctime)s [%(levelname)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
            )
        )
        logger.addHandler(fh)
        logger.debug(f"Logging to file enabled: {args.log_file}")


def merge_cli_config(cfg: Dict[str, Any], args: argparse.Namespace) -> Dict[str, Any]:
    """Return a copy of ``cfg`` with every option given on the command line applied."""
    merged = dict(cfg)
    for key in (
        "confidence_level",
        "conf_int",
        "test_data_quality",
        "correction_method",
        "failed_pvalue_policy",
        "n_workers",
        "family",
    ):
        value = getattr(args, key, None)
        if value is not None:
            merged[key] = value

    for key, option in (
        ("clogit_method", "method"),
        ("qgcomp_q", "q"),
        ("qgcomp_n_boot", "n_boot"),
        ("qgcomp_seed", "seed"),
    ):
        value = getattr(args, option, None)
        if value is not None:
            merged[key] = value
    if getattr(args, "no_quantize", False):
        merged["qgcomp_q"] = None
    return merged


def run_command(args: argparse.Namespace, cfg: Dict[str, Any], df: pd.DataFrame) -> pd.DataFrame:
    """Dispatch one parsed subcommand to its analysis function."""
    omics = list(args.omics)
    if args.omics_file:
        omics.extend(read_feature_list(args.omics_file))
    omics = list(dict.fromkeys(omics))
    if not omics:
        logger.warning("No omics features given (--omics / --omics-file)")

    owas_config = OwasConfig.from_dict(cfg)
    if args.command in ("owas", "mixed"):
        kwargs = dict(
            var=args.var,
            omics=omics,
            covars=args.covars,
            var_exposure_or_outcome=args.var_exposure_or_outcome,
            family=cfg.get("family", "gaussian"),
            config=owas_config,
        )
        if args.command == "mixed":
            return owas_mixed(df, groups=args.groups, **kwargs)
        return owas(df, **kwargs)

    if args.command == "clogit":
        return owas_clogit(
            df,
            cc_status=args.cc_status,
            cc_set=args.cc_set,
            omics=omics,
            covars=args.covars,
            method=cfg.get("clogit_method", "efron"),
            config=owas_config,
        )

    return owas_qgcomp(
        df,
        expnms=args.expnms,
        omics=omics,
        covars=args.covars,
        q=cfg.get("qgcomp_q", 4),
        family=cfg.get("family", "gaussian"),
        bootstrap=args.bootstrap,
        n_boot=cfg.get("qgcomp_n_boot", 200),
        seed=cfg.get("qgcomp_seed", 125),
        config=owas_config,
    )


def write_results(result_df: pd.DataFrame, output_file: Optional[str]) -> None:
    """Write the result table as TSV to ``output_file`` or stdout."""
    if output_file in (None, "-", "stdout"):
        result_df.to_csv(sys.stdout, sep="\t", index=False, na_rep="NA")
        return
    Path(output_file).parent.mkdir(parents=True, exist_ok=True)
    result_df.to_csv(output_file, sep="\t", index=False, na_rep="NA")
    logger.info(f"Results written to {output_file}")


def main(argv: Optional[List[str]] = None) -> int:
    """Run main entry point for the omicswas CLI.

    Steps:
        1. Parse arguments.
        2. Configure logging and load config; CLI values override it.
        3. Read the dataset and the feature list.
        4. Run the requested analysis and write the TSV result table.

    Returns 0 on success and 1 when the analysis cannot run (missing
    columns, zero variance, invalid options, unreadable input).
    """
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )

    parser = create_parser()
    args: argparse.Namespace = parser.parse_args(argv)
    _configure_logging(args)

    start_time = datetime.datetime.now()
    logger.info(f"Run started at {start_time.isoformat()}")
    logger.debug(f"CLI arguments: {args}")

    try:
        cfg = merge_cli_config(load_config(args.config), args)
        logger.debug(f"Configuration loaded: {cfg}")

        df = read_table(args.input)
        logger.info(f"Loaded {len(df)} rows x {len(df.columns)} columns from {args.input}")

        result_df = run_command(args, cfg, df)
        write_results(result_df, args.output_file)
    except OwasError as e:
        logger.error(f"Analysis failed: {e}")
        return 1
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Could not read input: {e}")
        return 1

    elapsed = datetime.datetime.now() - start_time
    logger.info(f"Run finished in {elapsed.total_seconds():.1f}s")
    return 0


if __name__ == "__main__":
    sys.exit(main())
