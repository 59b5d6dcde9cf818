import datetime

from django.core.management.base import BaseCommand, CommandError

from ledger_core.services.recurring import process_due_profiles


class Command(BaseCommand):
    help = "Issue invoices for recurring profiles that are due."

    def add_arguments(self, parser):
        parser.add_argument(
            "--date",
            help="Run as if today were this date (YYYY-MM-DD).",
        )

    def handle(self, *args, **options):
        today = None
        if options.get("date"):
            try:
                today = datetime.date.fromisoformat(options["date"])
            except ValueError:
                raise CommandError("--date must be YYYY-MM-DD") from None

        results = process_due_profiles(today=today)
        self.stdout.write(
            self.style.SUCCESS(
                f"Processed {results['processed']} profiles, "
                f"created {len(results['invoices_created'])} invoices, "
                f"{results['errors']} errors"
            )
        )
        if results["errors"]:
            self.stdout.write(self.style.WARNING("Some profiles failed; see the log"))
