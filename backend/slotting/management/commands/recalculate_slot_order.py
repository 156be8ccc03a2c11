from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from slotting.models import Mission
from slotting.ordering import recalculate_slot_order_numbers


class Command(BaseCommand):
    help = 'Renumber the slots of one or all missions into a continuous sequence'

    def add_arguments(self, parser):
        parser.add_argument(
            '--mission',
            type=str,
            help='Slug of a single mission to process (default: all missions)',
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Report how many slots would change without saving',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        slug = options.get('mission')

        missions = Mission.objects.all().order_by('slug')
        if slug:
            missions = missions.filter(slug=slug)
            if not missions.exists():
                raise CommandError(f'Mission "{slug}" not found')

        if dry_run:
            self.stdout.write(self.style.WARNING('DRY RUN - No changes will be made'))

        total_changed = 0
        mission_count = 0
        with transaction.atomic():
            for mission in missions:
                changed = recalculate_slot_order_numbers(mission)
                mission_count += 1
                total_changed += changed
                if changed:
                    self.stdout.write(f'  {mission.slug}: {changed} slot(s) renumbered')

            if dry_run:
                transaction.set_rollback(True)

        self.stdout.write(self.style.SUCCESS(
            f'Processed {mission_count} mission(s), {total_changed} slot(s) '
            f'{"would be " if dry_run else ""}renumbered'
        ))
