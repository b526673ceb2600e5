from datetime import date

from django.core.management.base import BaseCommand, CommandError

from apps.surveillance.alerts import list_urgent
from apps.surveillance.exceptions import ValidationError
from apps.surveillance.scheduling import UrgencyTier


class Command(BaseCommand):
    help = 'Lists active surveillance plans by urgency (most pressing first).'

    def add_arguments(self, parser):
        parser.add_argument('--as-of', help='Reference date (YYYY-MM-DD), defaults to today')
        parser.add_argument('--patient', help='Restrict to one patient id')
        parser.add_argument('--kind', help='Restrict to one surveillance kind')
        parser.add_argument(
            '--min-tier',
            default=UrgencyTier.UPCOMING,
            choices=UrgencyTier.values,
            help='Least pressing tier to list (default: upcoming)'
        )

    def handle(self, *args, **options):
        as_of = None
        if options['as_of']:
            try:
                as_of = date.fromisoformat(options['as_of'])
            except ValueError:
                raise CommandError(f"Invalid --as-of date: {options['as_of']}")

        try:
            entries = list_urgent(
                patient_id=options['patient'],
                kind=options['kind'],
                min_tier=options['min_tier'],
                today=as_of,
            )
        except ValidationError as e:
            raise CommandError('; '.join(e.messages))

        if not entries:
            self.stdout.write(self.style.SUCCESS('No surveillance plan needs attention.'))
            return

        for plan, tier in entries:
            line = (
                f'{tier.value:<9} {plan.next_due_date.isoformat()} '
                f'{plan.get_priority_display():<7} {plan.get_kind_display():<8} '
                f'plan={plan.id} patient={plan.patient_id}'
            )
            style = self.style.ERROR if tier == UrgencyTier.OVERDUE else self.style.WARNING
            self.stdout.write(style(line))

        self.stdout.write(self.style.NOTICE(f'{len(entries)} plan(s) listed'))
