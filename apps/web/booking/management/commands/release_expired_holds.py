"""
Cancel held reservations whose hold window has passed.

Usage:
    python apps/web/manage.py release_expired_holds
    python apps/web/manage.py release_expired_holds --once
    python apps/web/manage.py release_expired_holds --interval 60
"""

import logging
import time
from typing import Any

from django.core.management.base import BaseCommand

from apps.web.booking.orchestrator import BookingOrchestrator
from apps.web.erp.conf import run_with_client
from apps.web.erp.exceptions import ERPError

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Release expired reservation holds in the ERP"

    def add_arguments(self, parser: Any) -> None:
        parser.add_argument(
            "--once",
            action="store_true",
            help="Sweep once and exit (default: poll every 30s)",
        )
        parser.add_argument(
            "--interval",
            type=int,
            default=30,
            help="Polling interval in seconds (default: 30)",
        )

    def handle(self, *_args: Any, **options: Any) -> None:
        once = options["once"]
        interval = options["interval"]

        self.stdout.write("Starting hold sweeper...")

        while True:
            released = self.sweep()
            if released:
                self.stdout.write(f"Released {released} expired holds")

            if once:
                break

            time.sleep(interval)

    def sweep(self) -> int:
        """One pass. ERP failures are logged and retried on the next pass."""
        try:
            return run_with_client(lambda erp: BookingOrchestrator(erp).release_expired_holds())
        except ERPError as e:
            logger.exception("Hold sweep failed: %s", e.message)
            return 0
