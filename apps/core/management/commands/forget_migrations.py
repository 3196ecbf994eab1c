from django.core.management.base import BaseCommand, CommandError
from django.db import DEFAULT_DB_ALIAS, connections
from django.db.migrations.recorder import MigrationRecorder


class Command(BaseCommand):
    help = (
        'Deletes rows from the django_migrations table so the named migrations '
        'are treated as unapplied. The schema itself is left untouched.'
    )

    def add_arguments(self, parser):
        parser.add_argument('app_label', help='App whose migration records to remove')
        parser.add_argument('migration_names', nargs='+', help='Migration names, e.g. 0004_backfill_sizes')
        parser.add_argument(
            '--database',
            default=DEFAULT_DB_ALIAS,
            help='Database alias to operate on',
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='List matching records without deleting them',
        )

    def handle(self, *args, **options):
        recorder = MigrationRecorder(connections[options['database']])
        if not recorder.has_table():
            raise CommandError('No django_migrations table in this database.')

        app_label = options['app_label']
        removed = 0

        for name in options['migration_names']:
            records = recorder.migration_qs.filter(app=app_label, name=name)
            count = records.count()

            if count == 0:
                self.stdout.write(self.style.WARNING(f'No record for {app_label}.{name}'))
                continue

            if options['dry_run']:
                self.stdout.write(f'Would remove {app_label}.{name} ({count} row(s))')
                continue

            records.delete()
            removed += count
            self.stdout.write(f'Removed migration record "{app_label}.{name}": {count} row(s) deleted.')

        if not options['dry_run']:
            self.stdout.write(self.style.SUCCESS(f'Done. {removed} record(s) removed.'))
