from django.core.management.base import BaseCommand, CommandError

from ledger_core.models import Company
from ledger_core.services.chart import initialize_chart_of_accounts


class Command(BaseCommand):
    help = "Seed the standard chart of accounts (safe to run repeatedly)."

    def add_arguments(self, parser):
        parser.add_argument(
            "--company",
            help="Slug of the company to seed (default: every company).",
        )

    def handle(self, *args, **options):
        slug = options.get("company")
        if slug:
            companies = Company.objects.filter(slug=slug)
            if not companies.exists():
                raise CommandError(f"Company not found: {slug}")
        else:
            companies = Company.objects.order_by("pk")

        for company in companies:
            created = initialize_chart_of_accounts(company)
            self.stdout.write(
                self.style.SUCCESS(f"{company.slug}: {created} accounts created")
            )
