"""Deployment hook — (re)install a recurring task and report the outcome.

Usage examples:
    # Install the confirmation reminder with the configured cadence
    nudge-deploy

    # Daily digest at 07:00 Chicago time on the "mailers" queue
    nudge-deploy --task daily-digest --every 1d --at 07:00 \\
        --timezone America/Chicago --queue mailers
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import TYPE_CHECKING

from nudge.config import settings
from nudge.errors import SchedulerUnavailable
from nudge.reminders import REMINDER_TASK_NAME
from nudge.scheduler.models import Cadence
from nudge.scheduler.registrar import RecurringTaskRegistrar

if TYPE_CHECKING:
    from nudge.scheduler.models import TaskReport

logger = logging.getLogger(__name__)


async def run_deploy_hook(
    registrar: RecurringTaskRegistrar,
    task_name: str,
    cadence: Cadence,
    queue_label: str | None = None,
) -> TaskReport | None:
    """Install *task_name* and emit its report.

    Raises:
        SchedulerUnavailable: installation failed; no report is produced.
    """
    await registrar.install(task_name, cadence, queue_label)
    report = await registrar.report_outcome(task_name)
    if report is not None:
        logger.info("%s (first run %s)", report.description, report.first_run_at)
    return report


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nudge-deploy",
        description="Install (or replace) a recurring task registration.",
    )
    parser.add_argument("--task", default=REMINDER_TASK_NAME, help="Task name")
    parser.add_argument(
        "--every", default=settings.reminder_every, help="Interval, e.g. 30m, 12h, 1d"
    )
    parser.add_argument("--at", default=settings.reminder_at, help="Anchor time HH:MM")
    parser.add_argument(
        "--timezone", default=settings.scheduler_timezone, help="IANA timezone"
    )
    parser.add_argument("--queue", default=settings.default_queue, help="Queue label")
    return parser


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
    )
    args = _build_parser().parse_args(argv)
    try:
        cadence = Cadence.parse(args.every, args.at, args.timezone)
    except ValueError as exc:
        logger.error("Invalid cadence: %s", exc)
        return 2

    registrar = RecurringTaskRegistrar()
    try:
        asyncio.run(run_deploy_hook(registrar, args.task, cadence, args.queue))
    except SchedulerUnavailable as exc:
        logger.error("%s; previous registration state unknown, retry the deploy", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
