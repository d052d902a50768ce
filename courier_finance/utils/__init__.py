from courier_finance.utils.date_ranges import (
    effective_date, effective_date_expression,
    parse_date_input, build_date_range,
    start_of_day, end_of_day, first_day_of_month,
)
from courier_finance.utils.money import to_decimal, quantize, to_money
from courier_finance.utils.exporters import (
    get_export_filename, queryset_to_rows, export_rows,
    export_rows_to_csv, export_rows_to_excel, export_rows_to_pdf,
)


__all__ = [
    'effective_date',
    'effective_date_expression',
    'parse_date_input',
    'build_date_range',
    'start_of_day',
    'end_of_day',
    'first_day_of_month',
    'to_decimal',
    'quantize',
    'to_money',
    'get_export_filename',
    'queryset_to_rows',
    'export_rows',
    'export_rows_to_csv',
    'export_rows_to_excel',
    'export_rows_to_pdf',
]
