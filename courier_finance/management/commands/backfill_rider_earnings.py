from django.core.management.base import BaseCommand

from courier_finance.services.backfill_service import RiderEarningBackfill

import logging

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Backfill rider earnings and settlement statuses on historical terminal orders'

    def add_arguments(self, parser):
        parser.add_argument(
            '--batch-size',
            type=int,
            default=None,
            help='Number of orders to process in each batch'
        )
        parser.add_argument(
            '--start-after',
            default=None,
            help='Resume after this order primary key'
        )
        parser.add_argument(
            '--limit',
            type=int,
            default=None,
            help='Stop after this many orders'
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Simulate the backfill without making changes'
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']

        if dry_run:
            self.stdout.write(self.style.WARNING("DRY RUN - No changes will be made"))

        def report_progress(result):
            self.stdout.write(f"Processed {result.processed} orders (last id {result.last_pk})")

        result = RiderEarningBackfill().run(
            batch_size=options['batch_size'],
            start_after=options['start_after'],
            dry_run=dry_run,
            limit=options['limit'],
            progress=report_progress,
        )

        self.stdout.write(
            self.style.SUCCESS(
                f"\nBackfill complete: {result.processed} processed, "
                f"{result.earnings_updated} earnings, {result.settlements_updated} settlements, "
                f"{result.unchanged} unchanged, {result.errors} errors"
            )
        )
        if result.last_pk is not None:
            self.stdout.write(f"Last processed id: {result.last_pk}")
