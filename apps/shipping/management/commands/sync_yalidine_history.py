from django.core.management.base import BaseCommand, CommandError

from apps.shipping import services
from apps.shipping.yalidine import YalidineNotConfigured


class Command(BaseCommand):
    help = 'Pulls every parcel from Yalidine and aligns order delivery statuses with it.'

    def add_arguments(self, parser):
        parser.add_argument(
            '--max-pages',
            type=int,
            default=services.DEFAULT_MAX_PAGES,
            help='Stop after this many pages of 1000 parcels',
        )
        parser.add_argument(
            '--pause',
            type=float,
            default=services.DEFAULT_PAGE_PAUSE,
            help='Seconds to wait between pages',
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Report what would change without writing',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        self.stdout.write('Starting Yalidine historical sync...')

        try:
            report = services.sync_history(
                max_pages=options['max_pages'],
                pause=options['pause'],
                dry_run=dry_run,
            )
        except YalidineNotConfigured as e:
            raise CommandError(str(e))

        verb = 'Would update' if dry_run else 'Updated'
        self.stdout.write(f'Fetched: {report.fetched} shipments')
        self.stdout.write(self.style.SUCCESS(f'{verb}: {report.updated} orders'))
        self.stdout.write(f'Unchanged: {report.unchanged} orders')
        self.stdout.write(self.style.WARNING(f'Not found: {report.not_found} tracking numbers'))
        if report.errors:
            self.stdout.write(self.style.ERROR(f'Errors: {report.errors}'))
        self.stdout.write(self.style.SUCCESS('Sync complete.'))
