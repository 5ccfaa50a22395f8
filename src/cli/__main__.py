from __future__ import annotations

import argparse
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import psycopg2
from dotenv import load_dotenv

from src.config.loader import DEFAULT_CONFIG_PATH, ConfigurationError, load_config, resolve_dsn
from src.excel.reader import EmptyFileError, ParseError, UnsupportedFormatError, read_upload
from src.logging.error_log import ErrorLogBuffer, ErrorRecord
from src.logging.init import enable_debug, log_summary, setup_logging
from src.models.config_models import AppConfig
from src.models.records import Domain
from src.models.settings import Settings
from src.models.validation import Severity
from src.services.context import IdentitySession, SettingsContext, SettingsSaveError
from src.services.qr import QRError, register_qr
from src.services.report import write_validation_report
from src.services.repository import (
    describe_products,
    filter_clients,
    filter_products,
    list_clients,
    list_products,
    log_action,
    missing_data_alerts,
)
from src.services.status import today_in
from src.services.summary import render_sync_summary, render_validation_summary
from src.services.sync import SyncError, sync_dataset
from src.services.validator import summarize_findings, validate_dataset
from src.storage.local_store import LocalStore, StagingStore

"""CLI entrypoint.

Commands:
- upload / validate / clear work on the local staging store only
- sync / list / qr / settings need the backend; list degrades to an empty
  state when no backend is configured

Exit codes: 0 success, 1 fatal (config, parse, sync or backend error),
2 validation finished with errors.
"""

EXIT_SUCCESS = 0
EXIT_FATAL = 1
EXIT_VALIDATION_ERRORS = 2

DOMAINS = [d.value for d in Domain]


@dataclass
class CliContext:
    config: AppConfig
    store: LocalStore
    staging: StagingStore
    settings: SettingsContext
    session: IdentitySession | None
    error_log: ErrorLogBuffer


@contextmanager
def _db_connection(cfg: AppConfig) -> Iterator[Any]:  # pragma: no cover (thin wrapper; tests patch it)
    """psycopg2 connection + cursor for one command.

    Autocommit is on: services issue BEGIN / COMMIT / ROLLBACK around their
    multi-row writes, single-statement appends commit on their own.

    Raises:
        ConfigurationError: no backend configured
    """
    dsn = resolve_dsn(cfg.database)
    conn = psycopg2.connect(dsn)
    try:
        conn.autocommit = True
        with conn.cursor() as cur:
            yield cur
    finally:
        conn.close()


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env so backend variables there win over the shell environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="compliance", description="Certified product compliance tracker")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="Config file path")
    sub = p.add_subparsers(dest="command", required=True)

    up = sub.add_parser("upload", help="Parse a .csv/.xls/.xlsx file and stage it")
    up.add_argument("domain", choices=DOMAINS)
    up.add_argument("file", type=Path)

    val = sub.add_parser("validate", help="Validate staged data")
    val.add_argument("domain", choices=DOMAINS)
    val.add_argument("--export", action="store_true", help="Write the CSV validation report")

    sy = sub.add_parser("sync", help="Upsert staged data into the backend")
    sy.add_argument("domain", choices=DOMAINS)

    cl = sub.add_parser("clear", help="Drop staged data")
    cl.add_argument("domain", choices=DOMAINS)

    ls = sub.add_parser("list", help="List backend records with derived status")
    ls.add_argument("domain", choices=DOMAINS)
    ls.add_argument("--search", default=None)
    ls.add_argument("--status", default=None, help="Filter products by estado")

    qr = sub.add_parser("qr", help="Register the QR link of a product")
    qr.add_argument("codificacion")

    st = sub.add_parser("settings", help="Show or change settings")
    st.add_argument("--set", dest="assignments", action="append", default=[], metavar="KEY=VALUE")

    sub.add_parser("signout", help="Forget the cached identity session")
    return p.parse_args(argv)


def _error_type_for(e: ParseError) -> str:
    if isinstance(e, UnsupportedFormatError):
        return "UNSUPPORTED_FORMAT"
    if isinstance(e, EmptyFileError):
        return "EMPTY_FILE"
    return "PARSE_ERROR"


def _cmd_upload(args: argparse.Namespace, ctx: CliContext, logger) -> int:
    domain = Domain(args.domain)
    try:
        dataset = read_upload(args.file)
    except ParseError as e:
        logger.error(f"parse: {e}")
        ctx.error_log.append(
            ErrorRecord.create(args.file.name, domain.value, -1, _error_type_for(e), str(e))
        )
        return EXIT_FATAL
    ctx.staging.put(domain, dataset)
    logger.info(
        f"{domain.value}: {dataset.row_count} rows, {len(dataset.headers)} columns staged from {dataset.source_file_name}"
    )
    return EXIT_SUCCESS


def _cmd_validate(args: argparse.Namespace, ctx: CliContext, logger) -> int:
    domain = Domain(args.domain)
    if not ctx.staging.has_data(domain):
        logger.error(f"no staged {domain.value} data; upload a file first")
        return EXIT_FATAL
    dataset = ctx.staging.get(domain)

    findings = validate_dataset(dataset, domain)
    for finding in findings:
        if finding.severity is Severity.ERROR:
            logger.error(finding.message)
        elif finding.severity is Severity.WARNING:
            logger.warning(finding.message)
        else:
            logger.info(finding.message)
    counts = summarize_findings(findings)

    if args.export:
        try:
            path = write_validation_report(
                findings, Path(ctx.config.report_directory), domain, today_in(ctx.config.timezone)
            )
        except OSError as e:
            logger.error(f"report: {e}")
            return EXIT_FATAL
        logger.info(f"report written: {path}")

    # analytics はサインイン中のみ記録 (未設定のバックエンドは無視)
    if ctx.session is not None:
        try:
            with _db_connection(ctx.config) as cur:
                log_action(
                    cur,
                    ctx.session,
                    "validation",
                    domain.value,
                    {"totalRows": dataset.row_count, "errors": counts.errors, "warnings": counts.warnings},
                )
        except (ConfigurationError, psycopg2.Error) as e:
            logger.debug(f"validation not recorded in analytics: {e}")

    log_summary(render_validation_summary(domain, dataset.row_count, counts))
    return EXIT_VALIDATION_ERRORS if counts.errors else EXIT_SUCCESS


def _cmd_sync(args: argparse.Namespace, ctx: CliContext, logger) -> int:
    domain = Domain(args.domain)
    if not ctx.staging.has_data(domain):
        logger.error(f"no staged {domain.value} data to sync")
        return EXIT_FATAL
    dataset = ctx.staging.get(domain)
    try:
        with _db_connection(ctx.config) as cur:
            result = sync_dataset(cur, dataset, domain, error_log=ctx.error_log)
            log_action(cur, ctx.session, "sync", domain.value, {"count": result.synced, "skipped": result.skipped})
    except ConfigurationError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL
    except SyncError as e:
        logger.error(f"sync: {e}")
        return EXIT_FATAL
    except psycopg2.Error as e:
        logger.error(f"backend: {e}")
        return EXIT_FATAL

    if result.skipped:
        logger.info(f"{result.synced} {domain.value} synced, {result.skipped} skipped")
    else:
        logger.info(f"{result.synced} {domain.value} synced")
    log_summary(render_sync_summary(result))
    return EXIT_SUCCESS


def _cmd_clear(args: argparse.Namespace, ctx: CliContext, logger) -> int:
    domain = Domain(args.domain)
    if ctx.staging.clear(domain):
        logger.info(f"staged {domain.value} data removed")
    else:
        logger.info(f"no staged {domain.value} data")
    return EXIT_SUCCESS


def _print_products(cur: Any, args: argparse.Namespace, ctx: CliContext, logger) -> int:
    ctx.settings.reload(cur)
    products = filter_products(list_products(cur), args.search, args.status)
    today = today_in(ctx.config.timezone)
    for ov in describe_products(products, today, ctx.settings.threshold):
        p = ov.product
        days = "-" if ov.days_until_expiration is None else str(ov.days_until_expiration)
        line = f"{p.codificacion} estado={p.estado or '-'} dias={days} alerta={ov.severity.value}"
        if ov.missing:
            line += f" faltan=[{', '.join(ov.missing)}]"
        logger.info(line)
    return len(products)


def _print_clients(cur: Any, args: argparse.Namespace, logger) -> int:
    clients = filter_clients(list_clients(cur), args.search)
    alerts = missing_data_alerts(Domain.CLIENTS, clients)
    for c in clients:
        line = f"{c.cuit} {c.razon_social or '-'}"
        missing = alerts.get(str(c.cuit))
        if missing:
            line += f" faltan=[{', '.join(missing)}]"
        logger.info(line)
    return len(clients)


def _cmd_list(args: argparse.Namespace, ctx: CliContext, logger) -> int:
    domain = Domain(args.domain)
    try:
        with _db_connection(ctx.config) as cur:
            if domain is Domain.PRODUCTS:
                count = _print_products(cur, args, ctx, logger)
            else:
                count = _print_clients(cur, args, logger)
    except ConfigurationError as e:
        logger.warning(f"{e}; nothing to list")
        count = 0
    except psycopg2.Error as e:
        logger.error(f"backend: {e}")
        return EXIT_FATAL
    log_summary(f"action=list domain={domain.value} records={count}")
    return EXIT_SUCCESS


def _cmd_qr(args: argparse.Namespace, ctx: CliContext, logger) -> int:
    try:
        with _db_connection(ctx.config) as cur:
            url = register_qr(cur, ctx.config.app_origin, args.codificacion)
            log_action(cur, ctx.session, "generation", Domain.PRODUCTS.value, {"codificacion": args.codificacion})
    except ConfigurationError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL
    except (QRError, psycopg2.Error) as e:
        logger.error(f"qr: {e}")
        return EXIT_FATAL
    logger.info(f"QR link for {args.codificacion}: {url}")
    return EXIT_SUCCESS


def _parse_assignments(assignments: list[str]) -> dict[str, str]:
    changes: dict[str, str] = {}
    for item in assignments:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"expected KEY=VALUE, got {item!r}")
        changes[key.strip()] = value
    return changes


def _cmd_settings(args: argparse.Namespace, ctx: CliContext, logger) -> int:
    try:
        changes = _parse_assignments(args.assignments)
    except ValueError as e:
        logger.error(f"settings: {e}")
        return EXIT_FATAL
    try:
        with _db_connection(ctx.config) as cur:
            ctx.settings.reload(cur)
            if changes:
                ctx.settings.save(cur, changes)
                logger.info(f"settings saved: {', '.join(sorted(changes))}")
    except ConfigurationError as e:
        if changes:
            logger.error(f"config: {e}")
            return EXIT_FATAL
        logger.warning(f"{e}; showing defaults")
    except SettingsSaveError as e:
        logger.error(f"settings: {e}")
        return EXIT_FATAL
    except psycopg2.Error as e:
        logger.error(f"backend: {e}")
        return EXIT_FATAL
    for key in Settings.keys():
        logger.info(f"{key}={getattr(ctx.settings.settings, key)}")
    return EXIT_SUCCESS


def _cmd_signout(args: argparse.Namespace, ctx: CliContext, logger) -> int:
    if IdentitySession.sign_out(ctx.store):
        logger.info("signed out")
    else:
        logger.info("no active session")
    return EXIT_SUCCESS


COMMANDS = {
    "upload": _cmd_upload,
    "validate": _cmd_validate,
    "sync": _cmd_sync,
    "clear": _cmd_clear,
    "list": _cmd_list,
    "qr": _cmd_qr,
    "settings": _cmd_settings,
    "signout": _cmd_signout,
}


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # None のときのみ sys.argv を読む ([] を渡すテストで pytest の引数を拾わないため)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    if args.debug:
        enable_debug()
        logger.debug("debug mode enabled")

    _load_env_file(Path(".env"), override=True)
    try:
        cfg = load_config(args.config)
    except ConfigurationError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    store = LocalStore(Path(cfg.staging_directory))
    ctx = CliContext(
        config=cfg,
        store=store,
        staging=StagingStore(store),
        settings=SettingsContext(Settings(CRITICAL_DAYS_THRESHOLD=cfg.critical_days_threshold)),
        session=IdentitySession.restore(store),
        error_log=ErrorLogBuffer(),
    )

    try:
        return COMMANDS[args.command](args, ctx, logger)
    finally:
        log_path = ctx.error_log.flush()
        if log_path is not None:
            logger.info(f"error log: {log_path}")


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
