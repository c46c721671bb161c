"""
Order reports and Excel export.
"""
import io

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Alignment, Border, Side

from consultdesk import accounts, catalog
from consultdesk.due_dates import days_delayed, parse_datetime, utcnow
from consultdesk.roles import ROLE_CUSTOMER

ORDER_HEADERS = [
    'Order ID', 'Customer ID', 'Customer Name', 'Customer Email', 'Customer Mobile',
    'Service ID', 'Service Name', 'Package',
    'Employee ID', 'Employee Name', 'L1 Reviewer ID', 'L1 Reviewer Name',
    'Status', 'Purchased At', 'Due Date', 'Days Delayed', 'Delay Reason',
    'Price', 'GST Rate', 'IGST', 'CGST', 'SGST', 'Payment Method', 'Completed At',
]


def _date(value):
    parsed = parse_datetime(value)
    return parsed.strftime('%Y-%m-%d') if parsed else ''


def order_rows(now=None) -> list:
    """One flat row (in ORDER_HEADERS order) per order of every customer."""
    now = now or utcnow()
    services = {s['_id']: s for s in catalog.list_services()}
    staff = {}

    def staff_name(account_id):
        if not account_id:
            return ''
        if account_id not in staff:
            account = accounts.find_account(account_id)
            staff[account_id] = account.get('name', '') if account else ''
        return staff[account_id]

    rows = []
    for customer in accounts.list_accounts(role=ROLE_CUSTOMER):
        for order in customer.get('services') or []:
            service = services.get(order.get('serviceId')) or {}
            employee_id = order.get('employeeId')
            employee = accounts.find_account(employee_id) if employee_id else None
            l1_id = order.get('l1ReviewerId') or (employee or {}).get('L1EmpCode')
            rows.append([
                order.get('orderId'),
                customer['_id'],
                customer.get('name'),
                customer.get('email'),
                customer.get('mobile') or '',
                order.get('serviceId'),
                service.get('name', ''),
                order.get('packageName') or '',
                employee_id or '',
                staff_name(employee_id),
                l1_id or '',
                staff_name(l1_id),
                order.get('status'),
                _date(order.get('purchasedAt')),
                _date(order.get('dueDate')),
                days_delayed(order, now),
                order.get('delayReason') or '',
                order.get('price'),
                order.get('gstRate'),
                order.get('igst'),
                order.get('cgst'),
                order.get('sgst'),
                order.get('paymentMethod') or '',
                _date(order.get('completedAt')),
            ])
    return rows


def export_orders_workbook(now=None) -> io.BytesIO:
    """Build the orders export as an xlsx file in memory."""
    rows = order_rows(now)

    wb = Workbook()
    ws = wb.active
    ws.title = "Orders"

    # Header styling
    header_fill = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
    header_font = Font(bold=True, color="FFFFFF")
    thin_border = Border(
        left=Side(style='thin'),
        right=Side(style='thin'),
        top=Side(style='thin'),
        bottom=Side(style='thin')
    )
    late_fill = PatternFill(start_color="F8CBAD", end_color="F8CBAD", fill_type="solid")
    delayed_col = ORDER_HEADERS.index('Days Delayed') + 1

    for col, header in enumerate(ORDER_HEADERS, 1):
        cell = ws.cell(row=1, column=col, value=header)
        cell.fill = header_fill
        cell.font = header_font
        cell.alignment = Alignment(horizontal='center', wrap_text=True)
        cell.border = thin_border

    # Data rows
    for row_idx, row in enumerate(rows, 2):
        for col_idx, value in enumerate(row, 1):
            cell = ws.cell(row=row_idx, column=col_idx, value=value)
            cell.border = thin_border
        if row[delayed_col - 1]:
            ws.cell(row=row_idx, column=delayed_col).fill = late_fill

    # Adjust column widths
    for col in ws.columns:
        column = col[0].column_letter
        max_length = max(len(str(cell.value)) if cell.value is not None else 0 for cell in col)
        ws.column_dimensions[column].width = min(max_length + 2, 50)

    ws.freeze_panes = "A2"

    output = io.BytesIO()
    wb.save(output)
    output.seek(0)
    return output
