from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Iterable, Sequence

from .catalog import read_repositories
from .config import Settings
from .gitutils import SubprocessGit
from .manifest import RunManifest
from .reporting import summarize_cli, write_run_report
from .runner import run_migration
from .workspace import MonoMergerError, ensure_filter_repo, prepare_monorepo


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mono-merger",
        description=(
            "Merge repositories listed on stdin (<source> <name> [<folder>]) into one "
            "monorepo, keeping every branch and tag with its full history."
        ),
        epilog=(
            "Environment: MONOREPO_NAME names the monorepo directory (default: core); "
            "GIT_TMPDIR redirects git's temporary files."
        ),
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    parser.add_argument(
        "--continue",
        dest="resume",
        action="store_true",
        help="Resume an interrupted run in the existing monorepo directory.",
    )
    parser.add_argument(
        "--report",
        type=Path,
        help="Write a JSON report of every branch and tag step to this path.",
    )
    return parser


def configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def run(args: argparse.Namespace, stdin: Iterable[str] | None = None) -> int:
    configure_logging(args.verbose)
    logging.debug("Arguments: %s", args)

    settings = Settings.from_env()
    records = read_repositories(sys.stdin if stdin is None else stdin)
    ensure_filter_repo()

    engine = SubprocessGit(settings.monorepo_dir, tmpdir=settings.git_tmpdir)
    prepare_monorepo(settings.monorepo_dir, engine, resume=args.resume)
    manifest = RunManifest(settings.manifest_path)

    results = run_migration(engine, records, manifest, resume=args.resume)
    logging.info("%s", summarize_cli(results))
    if args.report:
        write_run_report(args.report.expanduser(), results)
    logging.info("Monorepo ready at %s", settings.monorepo_dir)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return run(args)
    except MonoMergerError as exc:
        logging.error("%s", exc)
        return 2
    except KeyboardInterrupt:
        logging.error("Interrupted; rerun with --continue to resume")
        return 130


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
