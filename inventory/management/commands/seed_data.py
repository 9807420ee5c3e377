"""
Management command to seed the database with sample data.

Generates:
- 1 admin and several technician accounts
- Inventory items for an air-conditioning service shop, each with 1-3 batches
- Job orders across all types and statuses

Usage:
    python manage.py seed_data
    python manage.py seed_data --clear  # Clear existing data first
"""
import random
from datetime import timedelta

from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from accounts.models import User
from inventory.models import InventoryItem, Batch
from jobs.models import JobOrder

DEFAULT_PASSWORD = 'cooltrack-demo'

INVENTORY_CATALOG = {
    'Refrigerant': [('R-410A Refrigerant', 'kg'), ('R-32 Refrigerant', 'kg'), ('R-22 Refrigerant', 'kg')],
    'Piping': [('Copper Pipe 1/4"', 'm'), ('Copper Pipe 3/8"', 'm'), ('Pipe Insulation', 'm')],
    'Electrical': [('Run Capacitor 35uF', 'pcs'), ('Contactor 24V', 'pcs'), ('Power Cable 2.0mm', 'm')],
    'Consumables': [('Drain Hose', 'm'), ('Electrical Tape', 'roll'), ('Wall Bracket Set', 'set')],
    'Parts': [('Fan Motor', 'pcs'), ('Thermostat', 'pcs'), ('Air Filter', 'pcs')],
}

CLIENT_NAMES = [
    'Maria Santos', 'Jose Reyes', 'Ana Cruz', 'Mark Villanueva', 'Liza Bautista',
    'Carlo Mendoza', 'Grace Tan', 'Paolo Garcia', 'Rica Navarro', 'Miguel Torres',
]

STREETS = ['Mabini St', 'Rizal Ave', 'Bonifacio Dr', 'Luna St', 'Aguinaldo Hwy', 'Quezon Blvd']
CITIES = ['Quezon City', 'Makati', 'Pasig', 'Taguig', 'Manila', 'Mandaluyong']


class Command(BaseCommand):
    help = 'Seed the database with sample accounts, inventory and jobs'

    def add_arguments(self, parser):
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Clear existing data before seeding',
        )
        parser.add_argument(
            '--technicians',
            type=int,
            default=5,
            help='Number of technician accounts to create (default: 5)',
        )
        parser.add_argument(
            '--jobs',
            type=int,
            default=60,
            help='Number of jobs to create (default: 60)',
        )

    def handle(self, *args, **options):
        if options['clear']:
            self.stdout.write('Clearing existing data...')
            self._clear_data()

        self.stdout.write('Starting database seeding...')

        with transaction.atomic():
            self._create_admin()
            technicians = self._create_technicians(options['technicians'])
            self._create_inventory()
            self._create_jobs(options['jobs'], technicians)

        self.stdout.write(self.style.SUCCESS('Database seeding completed successfully!'))
        self.stdout.write(f'Sample accounts use the password "{DEFAULT_PASSWORD}"')

    def _clear_data(self):
        """Clear all existing data except superusers."""
        JobOrder.objects.all().delete()
        InventoryItem.objects.all().delete()
        User.objects.filter(is_superuser=False).delete()

        self.stdout.write(self.style.WARNING('All existing data cleared.'))

    def _create_admin(self):
        admin, created = User.objects.get_or_create(
            email='admin@cooltrack.local',
            defaults={'name': 'Shop Admin', 'role': User.Role.ADMIN, 'is_staff': True}
        )
        if created:
            admin.set_password(DEFAULT_PASSWORD)
            admin.save()
            self.stdout.write(f'  Created admin: {admin.email}')
        return admin

    def _create_technicians(self, count):
        technicians = []
        for i in range(1, count + 1):
            technician, created = User.objects.get_or_create(
                email=f'tech{i}@cooltrack.local',
                defaults={'name': f'Technician {i}', 'role': User.Role.TECHNICIAN}
            )
            if created:
                technician.set_password(DEFAULT_PASSWORD)
                technician.save()
            technicians.append(technician)

        self.stdout.write(self.style.SUCCESS(f'Created {len(technicians)} technicians'))
        return technicians

    def _create_inventory(self):
        """Create items with one to three dated batches each."""
        now = timezone.now()
        count = 0

        for category, entries in INVENTORY_CATALOG.items():
            for name, unit in entries:
                item, created = InventoryItem.objects.get_or_create(
                    name=name,
                    defaults={
                        'category': category,
                        'unit': unit,
                        'min_threshold': random.randint(5, 20),
                    }
                )
                if not created:
                    continue

                Batch.objects.bulk_create([
                    Batch(
                        item=item,
                        name=f'Batch #{n:03d}',
                        quantity=random.randint(0, 60),
                        last_updated=now - timedelta(days=random.randint(1, 120)),
                    )
                    for n in range(1, random.randint(1, 3) + 1)
                ])
                count += 1

        self.stdout.write(self.style.SUCCESS(f'Created {count} inventory items'))

    def _create_jobs(self, count, technicians):
        """Create jobs spread over the last six months."""
        if not technicians:
            self.stdout.write(self.style.WARNING('No technicians, skipping jobs'))
            return

        now = timezone.now()
        jobs = []
        created_dates = []
        for _ in range(count):
            status = random.choice(JobOrder.Status.values)
            created_at = now - timedelta(days=random.randint(0, 180))
            created_dates.append(created_at)
            jobs.append(JobOrder(
                client_name=random.choice(CLIENT_NAMES),
                client_address=f'{random.randint(1, 999)} {random.choice(STREETS)}, {random.choice(CITIES)}',
                contact=f'09{random.randint(100000000, 999999999)}',
                type=random.choice(JobOrder.Type.values),
                status=status,
                assigned_to=random.choice(technicians),
                date_completed=created_at + timedelta(days=1) if status == JobOrder.Status.COMPLETED else None,
            ))

        created = JobOrder.objects.bulk_create(jobs)

        # created_at is auto_now_add; backdate after insert
        for job, created_at in zip(created, created_dates):
            JobOrder.objects.filter(pk=job.pk).update(created_at=created_at)

        self.stdout.write(self.style.SUCCESS(f'Created {len(created)} jobs'))
