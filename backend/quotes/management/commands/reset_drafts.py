from django.core.management.base import BaseCommand
from django.db import transaction

from quotes.models import QuoteDraft


class Command(BaseCommand):
    help = "Dev-only: delete every quote draft, or with --stuck only release drafts left loading or saving."

    def add_arguments(self, parser):
        parser.add_argument(
            "--stuck",
            action="store_true",
            help="Clear LOADING state and is_saving flags instead of deleting drafts.",
        )

    def handle(self, *args, **options):
        with transaction.atomic():
            if options["stuck"]:
                # a draft that never finished loading has no tree worth keeping
                dropped, _ = QuoteDraft.objects.filter(state=QuoteDraft.STATE_LOADING, tree={}).delete()
                loading = QuoteDraft.objects.filter(state=QuoteDraft.STATE_LOADING).update(state=QuoteDraft.STATE_READY)
                saving = QuoteDraft.objects.filter(is_saving=True).update(is_saving=False)
                self.stdout.write(self.style.SUCCESS(
                    f"Dropped {dropped} empty loading drafts, released {loading} loading and {saving} saving drafts."
                ))
                return
            deleted, _ = QuoteDraft.objects.all().delete()

        self.stdout.write(self.style.SUCCESS(f"Deleted {deleted} quote drafts."))
