"""Command-line entry point: ``python -m argus_tripwire {run,demo}``."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import sys

from argus_tripwire.alerter.formatter import format_incident_report
from argus_tripwire.config import Settings, get_settings
from argus_tripwire.pipeline import Pipeline

logger = logging.getLogger("argus_tripwire")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="argus-tripwire", description="Contract event burst tripwire")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("run", help="Monitor live contract logs until interrupted")

    demo = sub.add_parser("demo", help="Inject a synthetic burst and print the resulting incident")
    demo.add_argument("--resolve", action="store_true", help="Resolve the incident after the burst")
    return parser


def _configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.get_logging_level(),
        format="%(asctime)s - %(levelname)s - [%(name)s] %(message)s",
    )
    logging.getLogger("websockets").setLevel(logging.WARNING)


async def _run(settings: Settings) -> None:
    pipeline = Pipeline(settings)
    with contextlib.suppress(asyncio.CancelledError):
        await pipeline.run()


async def _demo(settings: Settings, *, resolve: bool) -> int:
    pipeline = Pipeline(settings, live=False)
    async with pipeline:
        injected = await pipeline.demo.run_burst()
        snapshot = pipeline.snapshot()
        print(f"Injected {injected} synthetic events; status={snapshot.status.value}, count={snapshot.count}")
        print(format_incident_report(snapshot.incident))
        if resolve:
            pipeline.resolve_incident()
            print(f"Resolved; status={pipeline.monitor.status.value}")

        print(json.dumps([a.to_dict() for a in pipeline.feed.latest()], indent=2))
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    settings = get_settings()
    _configure_logging(settings)
    logger.debug("Settings: %s", settings.redacted_summary())

    if args.command == "run":
        try:
            settings.validate_requirements(command="run")
        except ValueError as e:
            logger.error("%s", e)
            return 2
        with contextlib.suppress(KeyboardInterrupt):
            asyncio.run(_run(settings))
        return 0

    if args.command == "demo":
        try:
            settings.validate_requirements(command="demo")
        except ValueError as e:
            logger.error("%s", e)
            return 2
        # The demo always observes, regardless of MONITOR_ENABLED.
        settings = settings.model_copy(
            update={"monitor": settings.monitor.model_copy(update={"enabled": True})}
        )
        return asyncio.run(_demo(settings, resolve=args.resolve))

    return 1


if __name__ == "__main__":
    sys.exit(main())
