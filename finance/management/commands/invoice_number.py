# finance/management/commands/invoice_number.py
from django.core.management.base import BaseCommand, CommandError

from finance.services.numbering import generate_invoice_number


class Command(BaseCommand):
    help = "Show the current invoice number, or issue the next one with --issue."

    def add_arguments(self, parser):
        parser.add_argument(
            "--issue",
            action="store_true",
            help="Consume a sequence number instead of only previewing it.",
        )

    def handle(self, *args, **options):
        issue = options["issue"]
        result = generate_invoice_number(increment=issue)
        if result is None:
            raise CommandError("Invoice settings not configured or inactive.")

        label = "Issued" if issue else "Current"
        self.stdout.write(self.style.SUCCESS(f"{label}: {result.invoice_number}"))
        self.stdout.write(f"Financial year: {result.financial_year}")
        self.stdout.write(f"Next sequence no: {result.next_sequence_no}")
