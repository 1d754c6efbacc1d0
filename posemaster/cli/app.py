from __future__ import annotations

import argparse
import asyncio
import mimetypes
import sys
from collections.abc import Callable, Coroutine
from pathlib import Path
from typing import Any, NoReturn

from posemaster.cli import output as out
from posemaster.cli.config import Config, config_exists, config_path_display, load_config
from posemaster.errors import PoseMasterError

DESCRIPTION = """\
posemaster: pose extraction ingest and daily backup export

Extract 33-point body poses from images through a vision model, store
the pose and its source image side by side, and export both datasets
as a zipped daily backup mailed to an operator.

Quick start: posemaster extract photo.jpg"""


# ── Infrastructure helpers ──────────────────────────────────────────


def _build_pm(cfg: Config):
    from posemaster import PoseMaster

    cfg.ensure_dirs()
    return PoseMaster.from_config(cfg.to_dict())


def _require_api_key(cfg: Config) -> None:
    """Exit with guidance if no estimator key is configured."""
    if cfg.is_configured:
        return
    env = "OPENAI_API_KEY" if cfg.estimator_provider == "openai" else "GEMINI_API_KEY"
    out.error(
        f"No API key configured for the {cfg.estimator_provider} estimator. "
        f"Set {env} or add it to {config_path_display()}."
    )
    sys.exit(1)


def _fail(exc: PoseMasterError) -> NoReturn:
    out.error(f"{exc.category}: {exc.message}")
    sys.exit(1)


# ── config ──────────────────────────────────────────────────────────


async def cmd_config_show(args: argparse.Namespace) -> None:
    """Display current configuration."""
    cfg = load_config()
    source = config_path_display() if config_exists() else "defaults"

    out.header(f"Configuration ({source})")
    print()

    out.kv("Estimator", cfg.estimator_provider + (f" ({cfg.model})" if cfg.model else ""))
    if cfg.api_key:
        out.kv("API key", out.masked(cfg.api_key))
    else:
        out.kv("API key", out.dim("not set"))

    if cfg.store_provider == "sql":
        out.kv("Store", f"sql ({cfg.resolved_database_url})")
    else:
        out.kv("Store", "memory (in-memory, no persistence)")

    if cfg.smtp_host:
        out.kv("Notifier", f"smtp ({cfg.smtp_host}:{cfg.smtp_port})")
    else:
        out.kv("Notifier", "outbox (nothing is mailed)")
    out.kv("Backup recipient", cfg.recipient)
    out.kv("Backup schedule", f"daily at {cfg.schedule_at}")
    out.kv("Data directory", cfg.data_dir)
    print()


async def cmd_config_path(args: argparse.Namespace) -> None:
    print(config_path_display())


# ── extract ─────────────────────────────────────────────────────────


async def cmd_extract(args: argparse.Namespace) -> None:
    """Extract a pose from an image file and store it."""
    cfg = load_config()
    _require_api_key(cfg)

    path = Path(args.path)
    if not path.is_file():
        out.error(f"File not found: {path}")
        sys.exit(1)
    mime_type = args.mime or mimetypes.guess_type(path.name)[0] or ""

    pm = _build_pm(cfg)
    await pm.init()
    try:
        pose = await pm.submit(path.read_bytes(), mime_type)
    except PoseMasterError as exc:
        _fail(exc)
    finally:
        await pm.close()

    out.pose_summary(pose)


# ── backup ──────────────────────────────────────────────────────────


async def cmd_backup(args: argparse.Namespace) -> None:
    """Run one backup now."""
    cfg = load_config()
    pm = _build_pm(cfg)
    await pm.init()
    try:
        outcome = await pm.run_backup(trigger="manual")
    except PoseMasterError as exc:
        _fail(exc)
    finally:
        await pm.close()

    out.backup_summary(outcome, cfg.recipient)
    if not outcome.ok:
        sys.exit(1)


# ── stats ───────────────────────────────────────────────────────────


async def cmd_stats(args: argparse.Namespace) -> None:
    cfg = load_config()
    pm = _build_pm(cfg)
    await pm.init()
    try:
        stats = await pm.stats()
    finally:
        await pm.close()

    out.stats_summary(stats)
    print()


# ── serve ───────────────────────────────────────────────────────────


async def cmd_serve(args: argparse.Namespace) -> None:
    """Run the HTTP API with the daily backup scheduler."""
    import uvicorn

    from posemaster.api.app import create_app

    cfg = load_config()
    _require_api_key(cfg)
    app = create_app(_build_pm(cfg), run_scheduler=not args.no_scheduler)

    out.header(f"Serving on http://{args.host}:{args.port}")
    if not args.no_scheduler:
        out.info(f"Daily backup at {cfg.schedule_at} to {cfg.recipient}")
    server = uvicorn.Server(uvicorn.Config(app, host=args.host, port=args.port))
    await server.serve()


# ── Parser ──────────────────────────────────────────────────────────


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="posemaster",
        description=DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Commands:\n"
            "  posemaster extract photo.jpg    Extract and store a pose\n"
            "  posemaster backup               Export, archive and mail a backup\n"
            "  posemaster stats                Show dataset counts\n"
            "  posemaster serve                Run the HTTP API\n"
            "\n"
            "Configuration:\n"
            "  posemaster config show          Show current settings\n"
            "  posemaster config path          Print config file location\n"
        ),
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show detailed progress logs",
    )
    sub = parser.add_subparsers(dest="command", title="commands")

    p_extract = sub.add_parser("extract", help="Extract a pose from an image file")
    p_extract.add_argument("path", help="Path to a JPEG, PNG, WebP, GIF or BMP image")
    p_extract.add_argument(
        "--mime",
        metavar="TYPE",
        help="Override the mime type guessed from the file extension",
    )

    sub.add_parser("backup", help="Run a backup now")
    sub.add_parser("stats", help="Show dataset counts and mean confidence")

    p_serve = sub.add_parser("serve", help="Run the HTTP API")
    p_serve.add_argument("--host", default="127.0.0.1")
    p_serve.add_argument("--port", type=int, default=8000)
    p_serve.add_argument(
        "--no-scheduler",
        action="store_true",
        help="Do not run the daily backup while serving",
    )

    p_cfg = sub.add_parser("config", help="View settings")
    cfg_sub = p_cfg.add_subparsers(dest="config_command")
    cfg_sub.add_parser("show", help="Show current settings")
    cfg_sub.add_parser("path", help="Print config file location")

    return parser


# ── Dispatch ────────────────────────────────────────────────────────

_CommandHandler = Callable[[argparse.Namespace], Coroutine[Any, Any, None]]

_COMMAND_MAP: dict[str, _CommandHandler] = {
    "extract": cmd_extract,
    "backup": cmd_backup,
    "stats": cmd_stats,
    "serve": cmd_serve,
}

_CONFIG_MAP: dict[str, _CommandHandler] = {
    "show": cmd_config_show,
    "path": cmd_config_path,
}


def main() -> None:
    import logging

    parser = _build_parser()
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(
            level=logging.INFO,
            format="  %(name)s: %(message)s",
        )
    logging.getLogger("LiteLLM").setLevel(logging.CRITICAL)
    logging.getLogger("litellm").setLevel(logging.CRITICAL)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    if not args.command:
        parser.print_help()
        return

    if args.command == "config":
        if not args.config_command:
            parser.parse_args(["config", "--help"])
            return
        handler = _CONFIG_MAP.get(args.config_command)
    else:
        handler = _COMMAND_MAP.get(args.command)

    if handler is None:
        parser.print_help()
        return

    try:
        asyncio.run(handler(args))
    except KeyboardInterrupt:
        print()
