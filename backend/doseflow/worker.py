"""Background worker: event generation, missed-dose sweep and daily reset."""

from __future__ import annotations

import logging
import signal
import threading
import time
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy.orm import Session

from doseflow.core.logging import setup_logging
from doseflow.core.settings import Settings, get_settings
from doseflow.db.session import SessionLocal
from doseflow.db.types import utcnow
from doseflow.services.daily_reset import DailyResetService
from doseflow.services.event_generator import EventGenerator
from doseflow.services.missed_detection import MissedDoseSweep

logger = logging.getLogger(__name__)

TICK_SECONDS = 30


def _generate(db: Session, now: datetime) -> None:
    EventGenerator(db).generate_all(now)


def _sweep(db: Session, now: datetime) -> None:
    MissedDoseSweep(db).run(now)


def _reset(db: Session, now: datetime) -> None:
    DailyResetService(db).run_due(now)


class Worker:
    def __init__(self, settings: Settings, session_factory: Callable[[], Session] = SessionLocal) -> None:
        self.settings = settings
        self.session_factory = session_factory
        self.jobs: list[tuple[str, Callable[[Session, datetime], None], timedelta]] = [
            ("generate_events", _generate, timedelta(minutes=settings.generation_interval_minutes)),
            ("detect_missed", _sweep, timedelta(minutes=settings.sweep_interval_minutes)),
            ("daily_reset", _reset, timedelta(minutes=settings.reset_interval_minutes)),
        ]
        self._last_run: dict[str, datetime] = {}
        self._shutdown = threading.Event()

    def run(self) -> None:
        for sig in (signal.SIGTERM, signal.SIGINT):
            signal.signal(sig, lambda *_: self._request_shutdown())

        logger.info(
            "Worker starting (jobs=%s)",
            ", ".join(f"{name}/{interval}" for name, _, interval in self.jobs),
        )
        while not self._shutdown.is_set():
            self.tick(utcnow())
            self._shutdown.wait(TICK_SECONDS)
        logger.info("Worker stopped")

    def tick(self, now: datetime) -> list[str]:
        """Run every job whose interval has elapsed; returns the names run."""
        ran: list[str] = []
        for name, job, interval in self.jobs:
            last = self._last_run.get(name)
            if last is not None and now - last < interval:
                continue
            self._last_run[name] = now
            self._run_job(name, job, now)
            ran.append(name)
        return ran

    def _run_job(self, name: str, job: Callable[[Session, datetime], None], now: datetime) -> None:
        started = time.monotonic()
        db = self.session_factory()
        try:
            job(db, now)
        except Exception:
            db.rollback()
            logger.exception("Job %s failed", name, extra={"doseflow_job": name})
        finally:
            db.close()
        duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            "Job %s took %d ms",
            name,
            duration_ms,
            extra={"doseflow_job": name, "doseflow_duration_ms": duration_ms},
        )

    def _request_shutdown(self) -> None:
        logger.info("Shutdown requested")
        self._shutdown.set()


def main() -> None:
    settings = get_settings()
    setup_logging(settings.log_format, settings.log_level)
    Worker(settings).run()


if __name__ == "__main__":
    main()
