import datetime
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction

from ledger_core.models import (BankAccount, BankTransaction, Client, Company,
                                EntityMembership)
from ledger_core.services.documents import create_expense, create_invoice
from ledger_core.services.recurring import create_recurring_profile

User = get_user_model()


class Command(BaseCommand):
    help = (
        "Create a demo tenant (company), user, and sample financial data for testing."
    )

    # Define command-line arguments
    def add_arguments(self, parser):
        parser.add_argument(
            "--company-name",
            default="Demo Company",
            help="Name of the demo company to create.",
        )
        parser.add_argument(
            "--username", default="demo", help="Username for the demo user."
        )
        parser.add_argument(
            "--password", default="demo123", help="Password for the demo user."
        )

    @transaction.atomic
    def handle(self, *args, **options):
        company_name = options["company_name"]
        username = options["username"]
        password = options["password"]
        today = datetime.date.today()

        # 1. Create user
        user, created = User.objects.get_or_create(
            username=username,
            defaults={"email": f"{username}@example.com"},
        )
        if created:
            user.set_password(password)
            user.save()
        self.stdout.write(
            self.style.SUCCESS(f"User: {user.username} (pw={password})")
        )

        # 2. Create company (the chart of accounts is seeded on creation)
        company, created = Company.objects.get_or_create(
            name=company_name, defaults={"owner": user}
        )
        if not created:
            self.stdout.write(
                self.style.WARNING(f"Company {company} already exists, nothing to do")
            )
            return
        self.stdout.write(self.style.SUCCESS(f"Created company: {company}"))

        EntityMembership.objects.create(user=user, company=company, role="owner")
        user.default_company = company
        user.save(update_fields=["default_company"])

        # 3. Client and invoices (posted to the ledger as they are created)
        client = Client.objects.create(
            company=company, name=f"{company_name} Client", payment_terms_days=30
        )
        items = [{"description": "Consulting", "quantity": "10", "unit_price": "100.00"}]
        for days_ago in (45, 20, 3):
            outcome = create_invoice(
                company,
                client=client,
                issue_date=today - datetime.timedelta(days=days_ago),
                items=items,
                user=user,
            )
            self.stdout.write(
                self.style.SUCCESS(f"Created invoice: {outcome.document.invoice_number}")
            )

        # 4. Expenses
        create_expense(
            company, vendor="City Properties", category="Rent",
            date=today - datetime.timedelta(days=10),
            amount=Decimal("400.00"), tax_amount=Decimal("60.00"), user=user,
        )
        create_expense(
            company, vendor="Paper Co", category="Office Supplies",
            date=today - datetime.timedelta(days=5),
            amount=Decimal("100.00"), tax_amount=Decimal("15.00"),
            is_paid=False, user=user,
        )
        self.stdout.write(self.style.SUCCESS("Created expenses"))

        # 5. Bank feed with a receipt for the oldest invoice
        bank_account = BankAccount.objects.create(
            company=company, name=f"{company_name} Cheque"
        )
        BankTransaction.objects.create(
            company=company,
            bank_account=bank_account,
            date=today - datetime.timedelta(days=40),
            amount=Decimal("1150.00"),
            description=f"Payment from {client.name}",
        )
        self.stdout.write(self.style.SUCCESS("Created bank transaction"))

        # 6. Monthly retainer
        create_recurring_profile(
            company,
            client=client,
            interval="monthly",
            start_date=today + datetime.timedelta(days=1),
            line_items=[{"description": "Retainer", "quantity": "1", "unit_price": "500.00"}],
            user=user,
        )
        self.stdout.write(self.style.SUCCESS("Created recurring profile"))
        self.stdout.write(self.style.SUCCESS("Demo tenant setup complete!"))
