from django.core.management.base import BaseCommand, CommandError

import record_store
from record_store.client import RecordStoreError


class Command(BaseCommand):
    help = "Check the Airtable connection and optionally list the tables of the configured base."

    def add_arguments(self, parser):
        parser.add_argument("--tables", action="store_true", help="Also list the base's tables")

    def handle(self, *args, **options):
        try:
            gateway = record_store.load()
            result = gateway.check_connection()
        except RecordStoreError as exc:
            raise CommandError(f"Record store check failed: {exc}") from exc

        self.stdout.write(
            self.style.SUCCESS(
                f"Connected to base {gateway.client.base_id}: {result['records_found']} product(s) read"
                + (f", first is {result['first_product']!r}" if result["first_product"] else "")
            )
        )

        if options["tables"]:
            try:
                tables = gateway.list_tables()
            except RecordStoreError as exc:
                raise CommandError(f"Could not list tables: {exc}") from exc
            for table in tables:
                self.stdout.write(f"{table['id']}\t{table['name']}\t{table['fields_count']} fields")
