#!/usr/bin/env python3

"""
talkpipe command line

Usage:
    talkpipe list
    talkpipe init
    talkpipe run recording.wav [--pipeline FastCloud]
    talkpipe compare recording.wav FastCloud LocalPrivacy [--parallel]
    talkpipe stages

Every command accepts --settings FILE and --log-level LEVEL.
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

from .config.store import ConfigurationStore
from .errors import ConfigurationError
from .functional.utils import setup_logging
from .pipeline.context import CancellationToken, ProgressUpdate, WindowContext
from .pipeline.engine import PipelineEngine
from .pipeline.service import PipelineService
from .settings import DEFAULT_SETTINGS_FILE, AppSettings, SettingsManager
from .stages import create_default_registry

logger = logging.getLogger(__name__)


def build_service(settings: AppSettings) -> PipelineService:
    """Service over the configured store; an empty store is seeded with the defaults"""
    build_context = settings.to_build_context()
    store = ConfigurationStore(settings.pipelines_path)
    store.ensure_defaults(build_context)
    engine = PipelineEngine(create_default_registry(), build_context)
    return PipelineService(store, engine, default_pipeline=settings.default_pipeline)


def _print_progress(update: ProgressUpdate) -> None:
    percent = f"{update.percent:3d}% " if update.percent is not None else ""
    print(f"  {percent}{update.message}", file=sys.stderr)


def _install_interrupt(token: CancellationToken) -> None:
    try:
        asyncio.get_running_loop().add_signal_handler(signal.SIGINT, token.cancel, "interrupted")
    except (NotImplementedError, RuntimeError):
        logger.debug("Signal handlers unavailable; Ctrl+C will not cancel gracefully")


def cmd_list(args, settings: AppSettings) -> int:
    service = build_service(settings)
    names = service.available_pipelines()
    if not names:
        print(f"No enabled pipelines in {settings.pipelines_path}")
        return 1

    for name in names:
        config = service.get_configuration(name)
        marker = "*" if name == service.default_pipeline_name else " "
        stages = " -> ".join(
            stage.type if stage.enabled else f"({stage.type})" for stage in config.stages
        )
        print(f"{marker} {name}: {config.description}")
        print(f"    {stages or '(no stages)'}")
    return 0


def cmd_init(args, settings: AppSettings) -> int:
    store = ConfigurationStore(settings.pipelines_path)
    created = store.ensure_defaults(settings.to_build_context())
    if created:
        print(f"Created {len(created)} pipeline configuration(s) in {store.directory}:")
        for config in created:
            print(f"  {config.name}")
    else:
        print(f"Pipeline configurations already exist in {store.directory}")
    return 0


def cmd_stages(args, settings: AppSettings) -> int:
    for stage_type in create_default_registry().registered_types():
        print(stage_type)
    return 0


def _window_context(args) -> Optional[WindowContext]:
    context = WindowContext(process_name=args.process or "", window_title=args.window_title or "")
    return context if context.is_valid else None


async def _run(args, settings: AppSettings) -> int:
    audio = Path(args.audio).read_bytes()
    service = build_service(settings)
    token = CancellationToken()
    _install_interrupt(token)

    result = await service.run(
        audio,
        pipeline_name=args.pipeline,
        window_context=_window_context(args),
        progress=None if args.quiet else _print_progress,
        cancellation=token
    )

    if result.success:
        print(result.text)
        if args.metrics:
            print(result.metrics.summary(), file=sys.stderr)
        return 0

    print(f"❌ {result.status.name}: {result.error_message}", file=sys.stderr)
    if result.failed_stage_name:
        print(f"   Failed stage: {result.failed_stage_name}", file=sys.stderr)
    if args.metrics:
        print(result.metrics.summary(), file=sys.stderr)
    return 1


async def _compare(args, settings: AppSettings) -> int:
    audio = Path(args.audio).read_bytes()
    service = build_service(settings)
    token = CancellationToken()
    _install_interrupt(token)

    comparison = await service.compare(
        audio, args.pipelines, window_context=_window_context(args),
        cancellation=token, parallel=args.parallel
    )
    print(comparison.summary())
    return 0 if comparison.successful else 1


def cmd_run(args, settings: AppSettings) -> int:
    return asyncio.run(_run(args, settings))


def cmd_compare(args, settings: AppSettings) -> int:
    return asyncio.run(_compare(args, settings))


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="talkpipe", description="Configurable voice transcription pipelines")
    parser.add_argument("--settings", default=DEFAULT_SETTINGS_FILE, help="Settings file path")
    parser.add_argument("--log-level", default=None, help="Logging level (overrides settings)")
    parser.add_argument("--pipelines-dir", default=None, help="Pipeline configuration directory")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("list", help="List configured pipelines").set_defaults(handler=cmd_list)
    subparsers.add_parser("init", help="Create default pipeline configurations").set_defaults(handler=cmd_init)
    subparsers.add_parser("stages", help="List registered stage types").set_defaults(handler=cmd_stages)

    def add_window_args(sub):
        sub.add_argument("--process", help="Active application process name, used by cleaning stages")
        sub.add_argument("--window-title", help="Active window title, used by cleaning stages")

    run_parser = subparsers.add_parser("run", help="Transcribe a WAV file")
    run_parser.add_argument("audio", help="WAV file to transcribe")
    run_parser.add_argument("--pipeline", "-p", help="Pipeline name (default pipeline if omitted)")
    run_parser.add_argument("--metrics", action="store_true", help="Print the metrics summary")
    run_parser.add_argument("--quiet", "-q", action="store_true", help="Do not print progress")
    add_window_args(run_parser)
    run_parser.set_defaults(handler=cmd_run)

    compare_parser = subparsers.add_parser("compare", help="Compare pipelines on one WAV file")
    compare_parser.add_argument("audio", help="WAV file to transcribe")
    compare_parser.add_argument("pipelines", nargs="+", help="Pipeline names in run order")
    compare_parser.add_argument("--parallel", action="store_true", help="Run pipelines concurrently")
    add_window_args(compare_parser)
    compare_parser.set_defaults(handler=cmd_compare)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = create_parser().parse_args(argv)

    manager = SettingsManager(args.settings)
    settings = manager.get_settings()
    if args.pipelines_dir:
        settings = AppSettings.from_dict({**settings.to_dict(), "pipelines_dir": args.pipelines_dir})

    setup_logging(args.log_level or settings.logging_level, log_file=settings.logging_file)

    try:
        return args.handler(args, settings)
    except (KeyError, ValueError, ConfigurationError, OSError) as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
