import io
import csv
import datetime
from decimal import Decimal

import xlsxwriter
from django.http import HttpResponse
from django.utils import timezone
from djmoney.money import Money
from reportlab.lib import colors
from reportlab.lib.pagesizes import letter, A4, landscape
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer
from reportlab.lib.styles import getSampleStyleSheet

from courier_finance.constants import EXPORT_FORMAT_CSV, EXPORT_FORMAT_XLSX, EXPORT_FORMAT_PDF
from courier_finance.settings import get_finance_setting


def get_export_filename(prefix, extension):
    """
    Generate a filename for export with timestamp

    Args:
        prefix (str): Prefix for the filename
        extension (str): File extension

    Returns:
        str: Export filename
    """
    timestamp = timezone.now().strftime('%Y%m%d_%H%M%S')
    return f"{prefix}_{timestamp}.{extension}"


def _local_naive(value):
    if timezone.is_aware(value):
        value = timezone.localtime(value)
    return value.replace(tzinfo=None)


def _plain(value):
    """Unwrap Money into its amount"""
    if isinstance(value, Money):
        return value.amount
    return value


def _as_text(value):
    value = _plain(value)
    if isinstance(value, datetime.datetime):
        return _local_naive(value).strftime('%Y-%m-%d %H:%M:%S')
    if isinstance(value, datetime.date):
        return value.strftime('%Y-%m-%d')
    return str(value) if value is not None else ''


def _resolve(obj, field):
    # Nested attributes use dots (e.g. 'order.booking_id')
    value = obj
    for attr in field.split('.'):
        if value is None:
            break
        value = getattr(value, attr, None)
    return value


def queryset_to_rows(queryset, fields):
    """
    Flatten a queryset into export rows keyed by column header

    Args:
        queryset: Django queryset to export
        fields (list): Field names, dotted for related attributes

    Returns:
        list: One dict per object
    """
    model_fields = {f.name: f for f in queryset.model._meta.fields}
    headers = [
        str(model_fields[field].verbose_name).title() if field in model_fields
        else field.replace('.', ' ').replace('_', ' ').title()
        for field in fields
    ]
    return [
        {header: _resolve(obj, field) for header, field in zip(headers, fields)}
        for obj in queryset
    ]


def _headers(rows):
    return list(rows[0].keys()) if rows else []


def export_rows_to_csv(rows, filename_prefix='export'):
    """
    Export rows to CSV

    Args:
        rows (list): Dicts sharing the same keys (the column headers)
        filename_prefix (str): Prefix for the export filename

    Returns:
        HttpResponse: CSV response for download
    """
    response = HttpResponse(content_type='text/csv')
    response['Content-Disposition'] = f'attachment; filename="{get_export_filename(filename_prefix, "csv")}"'

    headers = _headers(rows)
    writer = csv.writer(response)
    writer.writerow(headers)
    for row in rows:
        writer.writerow([_as_text(row.get(header)) for header in headers])

    return response


def export_rows_to_excel(rows, filename_prefix='export', sheet_name='Sheet1'):
    """
    Export rows to Excel

    Returns:
        HttpResponse: Excel response for download
    """
    output = io.BytesIO()
    workbook = xlsxwriter.Workbook(output)
    worksheet = workbook.add_worksheet(sheet_name)

    header_format = workbook.add_format({
        'bold': True,
        'bg_color': '#f0f0f0',
        'border': 1
    })
    money_format = workbook.add_format({'num_format': '#,##0.00'})
    date_format = workbook.add_format({'num_format': 'yyyy-mm-dd'})
    datetime_format = workbook.add_format({'num_format': 'yyyy-mm-dd hh:mm:ss'})

    headers = _headers(rows)
    for col, header in enumerate(headers):
        worksheet.write(0, col, header, header_format)

    for row_idx, row in enumerate(rows, start=1):
        for col_idx, header in enumerate(headers):
            value = _plain(row.get(header))

            if isinstance(value, datetime.datetime):
                worksheet.write_datetime(row_idx, col_idx, _local_naive(value), datetime_format)
            elif isinstance(value, datetime.date):
                worksheet.write_datetime(row_idx, col_idx, value, date_format)
            elif isinstance(value, Decimal):
                worksheet.write_number(row_idx, col_idx, float(value), money_format)
            elif value is None:
                worksheet.write(row_idx, col_idx, '')
            else:
                worksheet.write(row_idx, col_idx, value)

    for col_idx in range(len(headers)):
        worksheet.set_column(col_idx, col_idx, 18)

    workbook.close()

    output.seek(0)
    response = HttpResponse(
        output.read(),
        content_type='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
    )
    response['Content-Disposition'] = f'attachment; filename="{get_export_filename(filename_prefix, "xlsx")}"'

    return response


def export_rows_to_pdf(rows, filename_prefix='export', title=None):
    """
    Export rows to PDF

    Page size and orientation come from EXPORT_PAGESIZE / EXPORT_ORIENTATION.

    Returns:
        HttpResponse: PDF response for download
    """
    buffer = io.BytesIO()

    page_size = A4 if get_finance_setting('EXPORT_PAGESIZE') == 'A4' else letter
    if get_finance_setting('EXPORT_ORIENTATION') == 'landscape':
        page_size = landscape(page_size)

    pdf = SimpleDocTemplate(
        buffer,
        pagesize=page_size,
        rightMargin=36,
        leftMargin=36,
        topMargin=36,
        bottomMargin=36
    )

    styles = getSampleStyleSheet()
    elements = []

    if title:
        elements.append(Paragraph(str(title), styles['Heading1']))
        elements.append(Spacer(1, 12))

    headers = _headers(rows)
    if not headers:
        elements.append(Paragraph('No records', styles['Normal']))
        pdf.build(elements)
        return _pdf_response(buffer, filename_prefix)

    data = [headers]
    for row in rows:
        data.append([_as_text(row.get(header)) for header in headers])

    table = Table(data, repeatRows=1)

    style = TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.grey),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('ALIGN', (0, 0), (-1, 0), 'CENTER'),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, 0), 9),
        ('BOTTOMPADDING', (0, 0), (-1, 0), 10),
        ('TEXTCOLOR', (0, 1), (-1, -1), colors.black),
        ('ALIGN', (0, 1), (-1, -1), 'LEFT'),
        ('FONTNAME', (0, 1), (-1, -1), 'Helvetica'),
        ('FONTSIZE', (0, 1), (-1, -1), 7),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.black),
    ])

    # Alternating row colors
    for row in range(1, len(data)):
        if row % 2 == 0:
            style.add('BACKGROUND', (0, row), (-1, row), colors.whitesmoke)

    table.setStyle(style)
    elements.append(table)

    pdf.build(elements)
    return _pdf_response(buffer, filename_prefix)


def _pdf_response(buffer, filename_prefix):
    pdf_data = buffer.getvalue()
    buffer.close()

    response = HttpResponse(content_type='application/pdf')
    response['Content-Disposition'] = f'attachment; filename="{get_export_filename(filename_prefix, "pdf")}"'
    response.write(pdf_data)

    return response


def export_rows(rows, export_format, filename_prefix='export', title=None):
    """
    Dispatch to the exporter of ``export_format`` (csv, xlsx or pdf)

    Raises:
        ValueError: For an unsupported format
    """
    export_format = str(export_format or EXPORT_FORMAT_CSV).lower()
    if export_format == EXPORT_FORMAT_CSV:
        return export_rows_to_csv(rows, filename_prefix)
    if export_format == EXPORT_FORMAT_XLSX:
        return export_rows_to_excel(rows, filename_prefix, sheet_name=str(title or 'Sheet1')[:31])
    if export_format == EXPORT_FORMAT_PDF:
        return export_rows_to_pdf(rows, filename_prefix, title=title)
    raise ValueError(f"Unsupported export format: {export_format}")
