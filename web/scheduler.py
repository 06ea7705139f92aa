"""Background scheduler for certificate and uptime passes."""

import logging
from datetime import datetime, timedelta, timezone

from apscheduler.schedulers.background import BackgroundScheduler

from config.settings import (
    CERT_CHECK_INTERVAL_HOURS,
    CERT_STARTUP_DELAY_SECONDS,
    UPTIME_CHECK_INTERVAL_MINUTES,
    UPTIME_STARTUP_DELAY_SECONDS,
)
from sslcert.errors import PassInProgress

logger = logging.getLogger(__name__)


class MonitorScheduler:
    """Owns the APScheduler instance that drives both monitors.

    Startup passes are one-shot date jobs; periodic passes are interval jobs
    that never overlap themselves. Overlap between a scheduled pass and a
    manual one is prevented by each monitor's pass lock: the tick is skipped.
    """

    def __init__(
        self,
        certificate_monitor,
        uptime_monitor,
        cert_interval_hours: int = CERT_CHECK_INTERVAL_HOURS,
        cert_startup_delay: int = CERT_STARTUP_DELAY_SECONDS,
        uptime_interval_minutes: int = UPTIME_CHECK_INTERVAL_MINUTES,
        uptime_startup_delay: int = UPTIME_STARTUP_DELAY_SECONDS,
        scheduler: BackgroundScheduler = None,
    ):
        self.certificate_monitor = certificate_monitor
        self.uptime_monitor = uptime_monitor
        self.cert_interval_hours = cert_interval_hours
        self.cert_startup_delay = cert_startup_delay
        self.uptime_interval_minutes = uptime_interval_minutes
        self.uptime_startup_delay = uptime_startup_delay
        self._scheduler = scheduler or BackgroundScheduler(daemon=True)

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def start(self) -> None:
        """Register the jobs and start; a no-op when already running."""
        if self.running:
            return

        now = datetime.now(timezone.utc)
        self._scheduler.add_job(
            func=self.run_certificate_startup_pass,
            trigger="date",
            run_date=now + timedelta(seconds=self.cert_startup_delay),
            id="certificate_startup_pass",
            replace_existing=True,
        )
        self._scheduler.add_job(
            func=self.run_certificate_checks,
            trigger="interval",
            hours=self.cert_interval_hours,
            id="certificate_periodic_check",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.add_job(
            func=self.run_uptime_checks,
            trigger="date",
            run_date=now + timedelta(seconds=self.uptime_startup_delay),
            id="uptime_startup_pass",
            replace_existing=True,
        )
        self._scheduler.add_job(
            func=self.run_uptime_checks,
            trigger="interval",
            minutes=self.uptime_interval_minutes,
            id="uptime_periodic_check",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

        self._scheduler.start()
        logger.info(
            "Scheduler started: certificates every %d hour(s), uptime every %d minute(s)",
            self.cert_interval_hours,
            self.uptime_interval_minutes,
        )

    def stop(self) -> None:
        """Shut down without waiting for a running pass to finish."""
        if not self.running:
            return
        self._scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")

    def jobs(self) -> list[dict]:
        return [
            {
                "id": job.id,
                "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
            }
            for job in self._scheduler.get_jobs()
        ]

    # ---- Jobs ----

    def run_certificate_startup_pass(self):
        """Discovery plus a check of every known domain."""
        return self._run("certificate startup pass", self.certificate_monitor.run_once)

    def run_certificate_checks(self):
        """Re-check the domains already in the registry."""
        return self._run("periodic certificate check", self.certificate_monitor.check_all)

    def run_uptime_checks(self):
        return self._run("uptime check", self.uptime_monitor.run_once)

    @staticmethod
    def _run(label: str, operation):
        logger.info("Running %s...", label)
        try:
            summary = operation()
        except PassInProgress as exc:
            logger.info("Skipping %s: %s", label, exc.message)
            return None
        except Exception:
            logger.exception("%s failed", label.capitalize())
            return None
        logger.info("%s complete: %s", label.capitalize(), summary)
        return summary
