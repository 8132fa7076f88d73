# finance/views.py

from django.http import HttpResponse
from django.utils import timezone
from django.views.decorators.http import require_GET
from openpyxl import Workbook
from openpyxl.styles import Font

from .models import InvoiceSequence


@require_GET
def invoice_sequence_export_view(request):
    wb = Workbook()
    ws = wb.active
    ws.title = "Invoice Sequences"

    headers = ["financial_year", "next_sequence_no", "last_issued_no", "created_at", "updated_at"]
    ws.append(headers)
    for cell in ws[1]:
        cell.font = Font(bold=True)

    for seq in InvoiceSequence.objects.order_by("financial_year"):
        ws.append([
            seq.financial_year,
            seq.current_sequence_no,
            seq.last_issued_no,
            # openpyxl cannot store tz-aware datetimes
            timezone.localtime(seq.created_at).replace(tzinfo=None),
            timezone.localtime(seq.updated_at).replace(tzinfo=None),
        ])

    response = HttpResponse(content_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet")
    response["Content-Disposition"] = 'attachment; filename="invoice_sequences.xlsx"'
    wb.save(response)
    return response
