# bl_core/blood_requests/management/commands/reconcile_request_indices.py
from __future__ import annotations

from django.core.management.base import BaseCommand

from bl_core.blood_requests.store import RequestStore


class Command(BaseCommand):
    help = (
        "Repair blood-request indices: drop dangling/inactive entries and restore missing ones. "
        "Safe to run repeatedly."
    )

    def add_arguments(self, parser):
        parser.add_argument("--dry-run", action="store_true", help="Print counts only; do not write.")

    def handle(self, *args, **opts):
        dry = opts["dry_run"]
        report = RequestStore.reconcile(dry_run=dry)

        prefix = "[dry-run] " if dry else ""
        self.stdout.write(
            self.style.SUCCESS(
                f"{prefix}Request indices reconciled. "
                f"dangling_removed={report.dangling_removed} "
                f"inactive_removed={report.inactive_removed} "
                f"hospital_restored={report.hospital_restored} "
                f"active_restored={report.active_restored}"
            )
        )
