"""Order book snapshot pipeline, one subcommand per lifecycle phase.

Subcommands:
    collect   Fetch depth, bucket it and push it to today's partition
    export    Load a day's partition and write it to parquet (optionally publish)
    sweep     Delete partitions that fell out of the retention window

Usage:
    python -m obpilot collect --symbol BTCUSDT=100 --symbol ETHUSDT=5
    python -m obpilot export --config symbols.yaml --day 20240105
    python -m obpilot sweep --symbol BTCUSDT --retention-days 2

Store credentials come from --lc-* flags or the LEANCLOUD_* env vars.
"""

import argparse
import logging
import os
import pathlib
import sys
from datetime import date, datetime
from typing import List, Sequence

from rich.console import Console

from data.backends.github import GithubPublisher
from data.collection.orderbook import collect_orderbooks, collect_periodically
from data.reading.orderbook import export_day
from data.retention.sweeper import sweep
from exchange.interface import ExchangeInterface
from helpers.constants import (
    CONSOLE_EMAIL_ENV_VAR,
    CONSOLE_PASSWORD_ENV_VAR,
    CONSOLE_URL_ENV_VAR,
    DEFAULT_CONSOLE_URL,
    DEFAULT_DEPTH_LIMIT,
    DEFAULT_EXCHANGE_URL,
    DEFAULT_EXPORT_FOLDER,
    DEFAULT_RETENTION_DAYS,
    DEFAULT_RETRY_ATTEMPTS,
    DEFAULT_SOURCE,
    EXCHANGE_URL_ENV_VAR,
    GITHUB_TOKEN_ENV_VAR,
    STORE_ID_ENV_VAR,
    STORE_KEY_ENV_VAR,
    STORE_URL_ENV_VAR,
)
from helpers.types.auth import ConsoleAuth, StoreAuth
from helpers.types.common import URL
from helpers.types.config import (
    ConsoleConfig,
    ExchangeConfig,
    PublisherConfig,
    RetryConfig,
    StoreConfig,
    SymbolConfig,
    load_symbols_file,
    parse_symbols,
)
from helpers.types.errors import AuthError, ValidationError
from helpers.types.partition import DAY_FORMAT, days_ago
from helpers.utils import SymbolReport, all_ok, generate_table
from store.console import ConsoleSession
from store.interface import SnapshotStore

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_FATAL = 2


def _required(value: str | None, flag: str, env_var: str) -> str:
    if value:
        return value
    if env_var in os.environ:
        return os.environ[env_var]
    raise ValidationError(f"Pass {flag} or set {env_var}")


def _symbols(args: argparse.Namespace) -> List[SymbolConfig]:
    symbols = parse_symbols(args.symbol or [])
    if args.config:
        symbols.extend(load_symbols_file(args.config))
    if not symbols:
        raise ValidationError("No symbols. Use --symbol SYMBOL=WIDTH or --config")
    return symbols


def _symbol_names(specs: Sequence[str]) -> List[str]:
    """Sweeping doesn't need bucket widths, so accept BTCUSDT or BTCUSDT=100"""
    return [spec.split("=")[0].strip().upper() for spec in specs]


def _store_config(args: argparse.Namespace) -> StoreConfig:
    return StoreConfig(
        base_url=URL(_required(args.lc_baseuri, "--lc-baseuri", STORE_URL_ENV_VAR)),
        auth=StoreAuth(
            _required(args.lc_id, "--lc-id", STORE_ID_ENV_VAR),
            _required(args.lc_key, "--lc-key", STORE_KEY_ENV_VAR),
        ),
        source=args.source,
        retry=RetryConfig(attempts=args.retry),
    )


def _parse_day(value: str) -> date:
    try:
        return datetime.strptime(value, DAY_FORMAT).date()
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Expected YYYYMMDD, got {value}") from e


def _print_reports(title: str, reports: List[SymbolReport]) -> int:
    Console().print(generate_table(title, reports))
    return EXIT_OK if all_ok(reports) else EXIT_FAILURES


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------


def cmd_collect(args: argparse.Namespace) -> int:
    symbols = _symbols(args)
    exchange_config = ExchangeConfig(
        base_url=URL(
            args.exchange_url or os.environ.get(EXCHANGE_URL_ENV_VAR, DEFAULT_EXCHANGE_URL)
        ),
        depth_limit=args.depth_limit,
        retry=RetryConfig(attempts=args.retry),
    )
    with ExchangeInterface(exchange_config) as exchange_interface, SnapshotStore(
        _store_config(args)
    ) as store:
        if args.interval <= 0:
            reports = collect_orderbooks(
                exchange_interface, store, symbols, workers=args.workers
            )
            return _print_reports("Orderbook Collection", reports)

        collect_periodically(
            exchange_interface,
            store,
            symbols,
            interval=args.interval,
            workers=args.workers,
            cycles=args.cycles,
            on_cycle=lambda r: _print_reports("Orderbook Collection", r),
        )
    return EXIT_OK


def cmd_export(args: argparse.Namespace) -> int:
    symbols = [s.symbol for s in _symbols(args)]
    day = args.day or days_ago(1)
    publisher = None
    if args.gh_owner and args.gh_repo:
        publisher = GithubPublisher(
            PublisherConfig(
                token=_required(args.gh_token, "--gh-token", GITHUB_TOKEN_ENV_VAR),
                owner=args.gh_owner,
                repo=args.gh_repo,
                branch=args.gh_branch,
            )
        )
    with SnapshotStore(_store_config(args)) as store:
        try:
            reports = export_day(
                store,
                symbols,
                day,
                pathlib.Path(args.export_dir),
                workers=args.workers,
                publisher=publisher,
            )
        finally:
            if publisher is not None:
                publisher.close()
    return _print_reports(f"Export {day.strftime(DAY_FORMAT)}", reports)


def cmd_sweep(args: argparse.Namespace) -> int:
    symbols = _symbol_names(args.symbol or [])
    if args.config:
        symbols.extend(s.symbol for s in load_symbols_file(args.config))
    if not symbols:
        raise ValidationError("No symbols. Use --symbol SYMBOL or --config")
    config = ConsoleConfig(
        app_id=_required(args.lc_id, "--lc-id", STORE_ID_ENV_VAR),
        auth=ConsoleAuth(
            _required(args.lc_email, "--lc-email", CONSOLE_EMAIL_ENV_VAR),
            _required(args.lc_pass, "--lc-pass", CONSOLE_PASSWORD_ENV_VAR),
        ),
        base_url=URL(
            args.lc_console_url
            or os.environ.get(CONSOLE_URL_ENV_VAR, DEFAULT_CONSOLE_URL)
        ),
        retry=RetryConfig(attempts=args.retry),
    )
    reports = sweep(
        ConsoleSession(config),
        symbols,
        retention_days=args.retention_days,
        lookback_days=args.lookback_days,
    )
    return _print_reports("Retention Sweep", reports)


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="obpilot", description="Order book snapshot pipeline"
    )
    parser.add_argument("--verbose", action="store_true", help="Debug logging")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--symbol", action="append", help="SYMBOL=WIDTH, e.g. BTCUSDT=100.0"
    )
    common.add_argument("--config", help="yaml file with a symbols list")
    common.add_argument("--workers", type=int, default=1, help="Symbols in parallel")
    common.add_argument("--lc-baseuri", help=f"Store url (env {STORE_URL_ENV_VAR})")
    common.add_argument("--lc-id", help=f"Store app id (env {STORE_ID_ENV_VAR})")
    common.add_argument("--lc-key", help=f"Store app key (env {STORE_KEY_ENV_VAR})")
    common.add_argument("--source", default=DEFAULT_SOURCE, help="Provenance tag")
    common.add_argument(
        "--retry",
        type=int,
        default=DEFAULT_RETRY_ATTEMPTS,
        help="Attempts for transient failures",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    # collect
    p_collect = sub.add_parser("collect", parents=[common], help="Fetch and push")
    p_collect.add_argument("--exchange-url", help="Exchange rest url")
    p_collect.add_argument("--depth-limit", type=int, default=DEFAULT_DEPTH_LIMIT)
    p_collect.add_argument(
        "--interval",
        type=float,
        default=0,
        help="Seconds between cycles. 0 runs a single cycle",
    )
    p_collect.add_argument("--cycles", type=int, help="Stop after this many cycles")

    # export
    p_export = sub.add_parser("export", parents=[common], help="Load and export")
    p_export.add_argument(
        "--day", type=_parse_day, help="YYYYMMDD (default: yesterday, UTC)"
    )
    p_export.add_argument("--export-dir", default=str(DEFAULT_EXPORT_FOLDER))
    p_export.add_argument("--gh-owner", help="Publish exports to this github owner")
    p_export.add_argument("--gh-repo", help="... and this repo")
    p_export.add_argument("--gh-branch", default="main")
    p_export.add_argument("--gh-token", help=f"(env {GITHUB_TOKEN_ENV_VAR})")

    # sweep
    p_sweep = sub.add_parser("sweep", parents=[common], help="Delete old partitions")
    p_sweep.add_argument(
        "--retention-days", type=int, default=DEFAULT_RETENTION_DAYS
    )
    p_sweep.add_argument(
        "--lookback-days",
        type=int,
        default=1,
        help="Also delete this many days before the cutoff (catches missed sweeps)",
    )
    p_sweep.add_argument("--lc-console-url", help=f"(env {CONSOLE_URL_ENV_VAR})")
    p_sweep.add_argument("--lc-email", help=f"(env {CONSOLE_EMAIL_ENV_VAR})")
    p_sweep.add_argument("--lc-pass", help=f"(env {CONSOLE_PASSWORD_ENV_VAR})")

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    cmd_map = {
        "collect": cmd_collect,
        "export": cmd_export,
        "sweep": cmd_sweep,
    }
    try:
        return cmd_map[args.command](args)
    except ValidationError as e:
        logger.error("%s", e)
        return EXIT_FATAL
    except AuthError as e:
        logger.error("authentication failed: %s", e)
        return EXIT_FATAL


if __name__ == "__main__":
    sys.exit(main())
