"""Styled XLSX exports for project registers.

Each ``export_*`` function returns a BytesIO buffer ready for Flask
``send_file``; ``export_filename`` builds ``<project-slug>_<kind>_<YYYYMMDD>.xlsx``.
"""
import io
import logging
import re
from datetime import date, datetime, timezone

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from fitout.models.budget import BudgetCategory, Expense
from fitout.models.ffe import FFEItem, MaterialItem
from fitout.models.procurement import ProcurementItem
from fitout.models.task import Task

logger = logging.getLogger(__name__)

EXPORT_KINDS = ("tasks", "budget", "procurement", "ffe", "boq")

HEADER_FILL = PatternFill(start_color="354A5F", end_color="354A5F", fill_type="solid")
HEADER_FONT = Font(color="FFFFFF", bold=True, size=11)
TOTAL_FONT = Font(bold=True, size=11)
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)
MONEY_FORMAT = "#,##0.00"
OVERDUE_FILL = PatternFill(start_color="F8D7DA", end_color="F8D7DA", fill_type="solid")


def slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", (value or "").lower()).strip("-")
    return slug or "project"


def export_filename(project, kind: str, today: date | None = None) -> str:
    today = today or date.today()
    return f"{slugify(project.name)}_{kind}_{today.strftime('%Y%m%d')}.xlsx"


# ── Sheet helpers ────────────────────────────────────────────────────────


def _title(ws, title, project):
    ws["A1"] = title
    ws["A1"].font = Font(size=16, bold=True)
    ws["A2"] = f"{project.name} · Generated {datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M UTC')}"
    ws["A2"].font = Font(size=10, italic=True, color="666666")


def _header(ws, row, headers):
    for col, header in enumerate(headers, 1):
        cell = ws.cell(row=row, column=col, value=header)
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT
        cell.border = THIN_BORDER
        cell.alignment = Alignment(horizontal="center")


def _row(ws, row, values, money_cols=()):
    for col, value in enumerate(values, 1):
        cell = ws.cell(row=row, column=col, value=value)
        cell.border = THIN_BORDER
        if col in money_cols:
            cell.number_format = MONEY_FORMAT


def _widths(ws, widths):
    for col, width in enumerate(widths, 1):
        ws.column_dimensions[get_column_letter(col)].width = width


def _save(wb):
    output = io.BytesIO()
    wb.save(output)
    output.seek(0)
    return output


def _d(value):
    return value.isoformat() if value else ""


# ── Exports ──────────────────────────────────────────────────────────────


def export_tasks_xlsx(project) -> io.BytesIO:
    wb = Workbook()
    ws = wb.active
    ws.title = "Tasks"
    _title(ws, "Task Register", project)

    headers = ["ID", "Title", "Status", "Priority", "Assignee", "Start", "Due", "Progress %", "Est. Hours", "Actual Hours"]
    _header(ws, 4, headers)
    tasks = Task.query.filter_by(project_id=project.id).order_by(Task.due_date.asc(), Task.id.asc()).all()
    for i, task in enumerate(tasks, 5):
        _row(ws, i, [
            task.id, task.title, task.status, task.priority,
            task.assignee.name if task.assignee else "",
            _d(task.start_date), _d(task.due_date), task.progress,
            task.estimated_hours, task.actual_hours,
        ])
        if task.is_overdue():
            ws.cell(row=i, column=7).fill = OVERDUE_FILL
    _widths(ws, [8, 40, 14, 10, 22, 12, 12, 11, 11, 12])
    return _save(wb)


def export_budget_xlsx(project) -> io.BytesIO:
    wb = Workbook()
    ws = wb.active
    ws.title = "Summary"
    _title(ws, "Budget Report", project)

    budget = round(project.budget or 0.0, 2)
    spent = round(project.spent_amount or 0.0, 2)
    summary = [
        ("Currency", project.currency),
        ("Budget", budget),
        ("Spent (approved + paid)", spent),
        ("Remaining", round(budget - spent, 2)),
        ("Utilization %", round(spent / budget * 100, 1) if budget > 0 else 0.0),
    ]
    for i, (label, value) in enumerate(summary, 4):
        ws.cell(row=i, column=1, value=label).font = TOTAL_FONT
        cell = ws.cell(row=i, column=2, value=value)
        if isinstance(value, float):
            cell.number_format = MONEY_FORMAT

    row = len(summary) + 5
    _header(ws, row, ["Category", "Allocated", "Spent", "Remaining"])
    categories = BudgetCategory.query.filter_by(project_id=project.id).order_by(BudgetCategory.name).all()
    for category in categories:
        row += 1
        allocated = round(category.allocated_amount or 0.0, 2)
        cat_spent = round(category.spent_amount or 0.0, 2)
        _row(ws, row, [category.name, allocated, cat_spent, round(allocated - cat_spent, 2)], money_cols=(2, 3, 4))
    _widths(ws, [28, 16, 16, 16])

    ws2 = wb.create_sheet("Expenses")
    _header(ws2, 1, ["Date", "Description", "Category", "Vendor", "Invoice", "Status", "Amount"])
    expenses = (Expense.query.filter_by(project_id=project.id)
                .order_by(Expense.expense_date.asc(), Expense.id.asc()).all())
    for i, expense in enumerate(expenses, 2):
        _row(ws2, i, [
            _d(expense.expense_date), expense.description,
            expense.category.name if expense.category else "",
            expense.vendor or "", expense.invoice_number or "", expense.status, expense.amount,
        ], money_cols=(7,))
    _widths(ws2, [12, 40, 20, 22, 14, 10, 14])
    return _save(wb)


def export_procurement_xlsx(project) -> io.BytesIO:
    wb = Workbook()
    ws = wb.active
    ws.title = "Procurement"
    _title(ws, "Procurement Schedule", project)

    _header(ws, 4, ["Item", "Category", "Vendor", "Qty", "Unit", "Est. Unit Cost",
                    "Actual Unit Cost", "Total", "Status", "Required"])
    items = (ProcurementItem.query.filter_by(project_id=project.id)
             .order_by(ProcurementItem.category, ProcurementItem.name).all())
    row = 4
    for item in items:
        row += 1
        _row(ws, row, [
            item.name, item.category, item.vendor.name if item.vendor else "",
            item.quantity, item.unit, item.estimated_unit_cost, item.actual_unit_cost,
            item.total_cost, item.status, _d(item.required_date),
        ], money_cols=(6, 7, 8))
    row += 1
    ws.cell(row=row, column=7, value="Total").font = TOTAL_FONT
    total = ws.cell(row=row, column=8, value=round(sum(i.total_cost or 0.0 for i in items), 2))
    total.font = TOTAL_FONT
    total.number_format = MONEY_FORMAT
    _widths(ws, [32, 14, 22, 8, 8, 14, 14, 14, 12, 12])
    return _save(wb)


def _schedule_sheet(ws, lines, extra_header, extra_value):
    _header(ws, 1, ["Item", "Category", extra_header, "Qty", "Unit", "Unit Cost", "Total", "Status", "Required"])
    for i, line in enumerate(lines, 2):
        _row(ws, i, [
            line.name, line.category, extra_value(line), line.quantity, line.unit,
            line.estimated_unit_cost, line.total_estimated_cost, line.status, _d(line.required_date),
        ], money_cols=(6, 7))
    _widths(ws, [32, 18, 22, 8, 8, 14, 14, 12, 12])


def export_ffe_xlsx(project) -> io.BytesIO:
    wb = Workbook()
    ws = wb.active
    ws.title = "FF&E"
    ffe = FFEItem.query.filter_by(project_id=project.id).order_by(FFEItem.category, FFEItem.name).all()
    _schedule_sheet(ws, ffe, "Manufacturer", lambda line: line.manufacturer or "")

    ws2 = wb.create_sheet("Materials")
    materials = (MaterialItem.query.filter_by(project_id=project.id)
                 .order_by(MaterialItem.category, MaterialItem.name).all())
    _schedule_sheet(ws2, materials, "Supplier", lambda line: line.supplier or "")
    return _save(wb)


def export_boq_xlsx(project) -> io.BytesIO:
    """Bill of Quantities: every costed line grouped by section with a grand total."""
    wb = Workbook()
    ws = wb.active
    ws.title = "BOQ"
    _title(ws, "Bill of Quantities", project)

    sections = [
        ("Procurement", [
            (i.name, i.category, i.quantity, i.unit,
             i.actual_unit_cost if i.actual_unit_cost is not None else i.estimated_unit_cost,
             i.total_cost)
            for i in ProcurementItem.query.filter_by(project_id=project.id).order_by(ProcurementItem.name)
        ]),
        ("FF&E", [
            (f.name, f.category, f.quantity, f.unit, f.estimated_unit_cost, f.total_estimated_cost)
            for f in FFEItem.query.filter_by(project_id=project.id).order_by(FFEItem.name)
        ]),
        ("Materials", [
            (m.name, m.category, m.quantity, m.unit, m.estimated_unit_cost, m.total_estimated_cost)
            for m in MaterialItem.query.filter_by(project_id=project.id).order_by(MaterialItem.name)
        ]),
    ]

    row = 4
    _header(ws, row, ["Ref", "Description", "Category", "Qty", "Unit", "Rate", "Amount"])
    grand_total = 0.0
    for number, (section, lines) in enumerate(sections, 1):
        row += 1
        ws.cell(row=row, column=1, value=str(number)).font = TOTAL_FONT
        ws.cell(row=row, column=2, value=section).font = TOTAL_FONT
        subtotal = 0.0
        for index, (name, category, qty, unit, rate, amount) in enumerate(lines, 1):
            row += 1
            _row(ws, row, [f"{number}.{index}", name, category, qty, unit, rate, amount], money_cols=(6, 7))
            subtotal += amount or 0.0
        row += 1
        ws.cell(row=row, column=6, value=f"{section} subtotal").font = TOTAL_FONT
        cell = ws.cell(row=row, column=7, value=round(subtotal, 2))
        cell.font = TOTAL_FONT
        cell.number_format = MONEY_FORMAT
        grand_total += subtotal

    row += 2
    ws.cell(row=row, column=6, value=f"Grand total ({project.currency})").font = TOTAL_FONT
    cell = ws.cell(row=row, column=7, value=round(grand_total, 2))
    cell.font = TOTAL_FONT
    cell.number_format = MONEY_FORMAT
    _widths(ws, [8, 36, 16, 8, 8, 14, 16])
    return _save(wb)


EXPORTERS = {
    "tasks": export_tasks_xlsx,
    "budget": export_budget_xlsx,
    "procurement": export_procurement_xlsx,
    "ffe": export_ffe_xlsx,
    "boq": export_boq_xlsx,
}
