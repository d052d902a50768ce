from django.apps import apps
from django.core.management.base import BaseCommand, CommandError

from courier_finance.services.report_service import FinanceReportService
from courier_finance.settings import get_finance_setting


class Command(BaseCommand):
    help = 'Print the settlement summary of one rider for a date window'

    def add_arguments(self, parser):
        parser.add_argument('rider_id', help='Primary key of the rider')
        parser.add_argument('--from', dest='date_from', default=None, help='Window start (YYYY-MM-DD)')
        parser.add_argument('--to', dest='date_to', default=None, help='Window end (YYYY-MM-DD)')

    def handle(self, *args, **options):
        User = apps.get_model(get_finance_setting('USER_MODEL'))
        try:
            rider = User.objects.filter(pk=options['rider_id']).first()
        except (ValueError, TypeError):
            rider = None
        if rider is None:
            raise CommandError(f"Rider {options['rider_id']} not found")

        result = FinanceReportService().rider_finance_window(
            rider, date_from=options['date_from'], date_to=options['date_to']
        )

        window = result['window']
        self.stdout.write(f"Rider: {rider} ({result['rider_id']})")
        self.stdout.write(f"Window: {window['start'] or '-'} -> {window['end'] or '-'}")
        self.stdout.write(f"Orders: {result['orders']}")
        for key, value in result['summary'].items():
            self.stdout.write(f"  {key}: {value}")
