# finance/management/commands/seed_invoice_settings.py
from django.core.management.base import BaseCommand

from finance.models import InvoiceSettings


class Command(BaseCommand):
    """Seed the default invoice numbering settings."""

    help = "Create the default invoice numbering settings if they do not exist yet."

    def handle(self, *args, **options):
        settings_obj, created = InvoiceSettings.objects.get_or_create(
            pk=InvoiceSettings.singleton_instance_id,
        )

        if created:
            self.stdout.write(self.style.SUCCESS(
                f"Created invoice settings: {settings_obj.invoice_format} "
                f"({settings_obj.financial_year_start} → {settings_obj.financial_year_end})"
            ))
        else:
            self.stdout.write(self.style.WARNING("Invoice settings already exist."))
