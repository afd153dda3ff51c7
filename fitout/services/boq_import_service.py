"""
BOQ (bill of quantities) Excel import and gap report.

Features:
  - .xlsx template download (header row + one example line)
  - Parse the first worksheet of an uploaded workbook with openpyxl
  - Headers matched case- and punctuation-insensitively
    ("Unit of Measure", "unitOfMeasure" and "unit_of_measure" are the same column)
  - Per-row validation with sheet row numbers; blank rows skipped
  - Valid rows land as project procurement items or template BOQ lines
  - Gap report: procurement items missing unit cost, vendor or required date

Transaction policy: functions use flush(), never commit().
"""

import io
import logging
import re
from zipfile import BadZipFile

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Alignment, Font
from openpyxl.utils import get_column_letter
from openpyxl.utils.exceptions import InvalidFileException
from sqlalchemy import func

from fitout.core.exceptions import ValidationError
from fitout.models import db
from fitout.models.activity import write_activity
from fitout.models.procurement import ProcurementItem, Vendor, trade_category
from fitout.models.template import TemplateBOQItem
from fitout.services.export_service import HEADER_FILL, HEADER_FONT
from fitout.utils.helpers import parse_amount, parse_int

logger = logging.getLogger(__name__)

MAX_BOQ_ROWS = 2000
MAX_QUANTITY = 1_000_000
MAX_UNIT_PRICE = 1_000_000
MAX_LEAD_TIME_DAYS = 365
MAX_DESCRIPTION = 500

# (field, header label, template width)
BOQ_COLUMNS = (
    ("item_number", "Item Number", 12),
    ("description", "Description", 40),
    ("category", "Category", 16),
    ("quantity", "Quantity", 12),
    ("unit_of_measure", "Unit of Measure", 16),
    ("unit_price", "Unit Price", 12),
    ("supplier", "Supplier", 24),
    ("lead_time", "Lead Time", 12),
    ("notes", "Notes", 30),
    ("material", "Material", 16),
    ("brand", "Brand", 16),
)
REQUIRED_COLUMNS = ("description", "category", "quantity", "unit_of_measure")
TEMPLATE_EXAMPLE = (
    "1", "Recessed LED downlight 12W", "Electrical", 100, "units", 50.00,
    "Supplier Name", 14, "Optional notes", "Aluminium", "Brand Name",
)

CATEGORY_LABELS = {
    "electrical": "Electrical",
    "plumbing": "Plumbing",
    "hvac": "HVAC",
    "carpentry": "Carpentry",
    "painting": "Painting",
    "flooring": "Flooring",
    "doors & windows": "Doors & Windows",
    "hardware": "Hardware",
    "fixtures": "Fixtures",
    "materials": "Materials",
}


def _header_key(value) -> str:
    return re.sub(r"[^a-z]", "", str(value or "").lower())


_HEADER_FIELDS = {_header_key(field): field for field, _label, _width in BOQ_COLUMNS}
_HEADER_FIELDS.update({
    "item": "item_number", "itemno": "item_number",
    "qty": "quantity", "unit": "unit_of_measure", "uom": "unit_of_measure",
    "rate": "unit_price", "price": "unit_price",
    "leadtimedays": "lead_time", "vendor": "supplier",
})


# ═══════════════════════════════════════════════════════════════
# Template
# ═══════════════════════════════════════════════════════════════

def generate_boq_template() -> io.BytesIO:
    """Workbook with the BOQ header row and one example line."""
    wb = Workbook()
    ws = wb.active
    ws.title = "BOQ"
    for col, (_field, label, width) in enumerate(BOQ_COLUMNS, 1):
        cell = ws.cell(row=1, column=col, value=label)
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT
        cell.alignment = Alignment(horizontal="center")
        ws.column_dimensions[get_column_letter(col)].width = width
    for col, value in enumerate(TEMPLATE_EXAMPLE, 1):
        ws.cell(row=2, column=col, value=value).font = Font(italic=True, color="666666")
    ws.freeze_panes = "A2"

    output = io.BytesIO()
    wb.save(output)
    output.seek(0)
    return output


# ═══════════════════════════════════════════════════════════════
# Parsing
# ═══════════════════════════════════════════════════════════════

def read_workbook(content: bytes) -> list[tuple[int, dict]]:
    """Return ``(sheet_row_number, {field: cell value})`` for each non-blank data row.

    Raises:
        ValidationError: unreadable workbook, no worksheet, missing columns, too many rows.
    """
    try:
        wb = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except (InvalidFileException, BadZipFile, KeyError, OSError, ValueError) as exc:
        raise ValidationError("File is not a readable .xlsx workbook") from exc

    try:
        if not wb.worksheets:
            raise ValidationError("No worksheet found in Excel file")
        rows = wb.worksheets[0].iter_rows(values_only=True)
        header = next(rows, None)
        if header is None:
            raise ValidationError("The worksheet is empty")

        columns = {idx: _HEADER_FIELDS.get(_header_key(value)) for idx, value in enumerate(header)}
        present = {field for field in columns.values() if field}
        missing = [field for field in REQUIRED_COLUMNS if field not in present]
        if missing:
            raise ValidationError(f"Missing required columns: {', '.join(missing)}",
                                  details={"missing_columns": missing})

        parsed = []
        for row_number, values in enumerate(rows, start=2):
            record = {}
            for idx, value in enumerate(values):
                field = columns.get(idx)
                if field and field not in record:
                    record[field] = value.strip() if isinstance(value, str) else value
            if all(v in (None, "") for v in record.values()):
                continue
            parsed.append((row_number, record))
            if len(parsed) > MAX_BOQ_ROWS:
                raise ValidationError(f"Too many rows (max {MAX_BOQ_ROWS})")
    finally:
        wb.close()
    return parsed


def _text(value) -> str | None:
    if value in (None, ""):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip() or None


def validate_row(record: dict) -> tuple[dict | None, list[str]]:
    """Clean one BOQ row. Returns ``(row, [])`` when valid, ``(None, errors)`` otherwise."""
    errors = []

    description = _text(record.get("description"))
    if not description:
        errors.append("Description is required")
    elif len(description) > MAX_DESCRIPTION:
        errors.append(f"Description must be {MAX_DESCRIPTION} characters or less")

    category = _text(record.get("category"))
    if not category:
        errors.append("Category is required")
    elif category.lower() not in CATEGORY_LABELS:
        errors.append(f"Invalid category. Must be one of: {', '.join(CATEGORY_LABELS.values())}")

    quantity = None
    if record.get("quantity") in (None, ""):
        errors.append("Quantity is required")
    else:
        try:
            quantity = parse_amount(record["quantity"], "Quantity", minimum=None)
        except ValidationError as exc:
            errors.append(str(exc))
        else:
            if quantity <= 0:
                errors.append("Quantity must be a positive number")
            elif quantity > MAX_QUANTITY:
                errors.append(f"Quantity cannot exceed {MAX_QUANTITY:,}")

    unit = _text(record.get("unit_of_measure"))
    if not unit:
        errors.append("Unit of Measure is required")

    unit_price = None
    try:
        unit_price = parse_amount(record.get("unit_price"), "Unit Price")
    except ValidationError as exc:
        errors.append(str(exc))
    else:
        if unit_price is not None and unit_price > MAX_UNIT_PRICE:
            errors.append(f"Unit Price cannot exceed {MAX_UNIT_PRICE:,}")

    lead_time = None
    try:
        lead_time = parse_int(record.get("lead_time"), "Lead Time", minimum=0, maximum=MAX_LEAD_TIME_DAYS)
    except ValidationError as exc:
        errors.append(str(exc))

    if errors:
        return None, errors
    return {
        "item_number": _text(record.get("item_number")),
        "description": description,
        "category": CATEGORY_LABELS[category.lower()],
        "quantity": quantity,
        "unit_of_measure": unit[:50],
        "unit_price": unit_price,
        "supplier": _text(record.get("supplier")),
        "lead_time": lead_time,
        "notes": _text(record.get("notes")),
        "material": _text(record.get("material")),
        "brand": _text(record.get("brand")),
    }, []


def summarize(rows: list[dict]) -> dict:
    """Totals over valid rows, overall and per category."""
    categories: dict[str, dict] = {}
    for row in rows:
        bucket = categories.setdefault(row["category"], {
            "category": row["category"], "item_count": 0, "quantity": 0.0, "cost": 0.0,
        })
        bucket["item_count"] += 1
        bucket["quantity"] += row["quantity"]
        if row["unit_price"] is not None:
            bucket["cost"] += row["quantity"] * row["unit_price"]
    for bucket in categories.values():
        bucket["quantity"] = round(bucket["quantity"], 2)
        bucket["cost"] = round(bucket["cost"], 2)

    return {
        "total_items": len(rows),
        "total_quantity": round(sum(r["quantity"] for r in rows), 2),
        "total_cost": round(sum(c["cost"] for c in categories.values()), 2),
        "categories_count": len(categories),
        "categories": sorted(categories.values(), key=lambda c: c["category"]),
        "items_without_price": sum(1 for r in rows if r["unit_price"] is None),
        "items_without_supplier": sum(1 for r in rows if not r["supplier"]),
    }


def validate_workbook(content: bytes) -> dict:
    """Parse and validate every row; nothing is stored."""
    valid, errors = [], []
    for row_number, record in read_workbook(content):
        row, row_errors = validate_row(record)
        if row_errors:
            errors.append({"row": row_number, "errors": row_errors})
        else:
            valid.append({"row": row_number, **row})
    return {
        "total_rows": len(valid) + len(errors),
        "valid_count": len(valid),
        "error_count": len(errors),
        "valid_rows": valid,
        "errors": errors,
        "summary": summarize(valid),
    }


def _import_status(result) -> str:
    if not result["valid_count"]:
        return "error"
    return "partial" if result["error_count"] else "completed"


def _vendor_lookup(rows) -> dict:
    names = {r["supplier"].lower() for r in rows if r["supplier"]}
    if not names:
        return {}
    vendors = Vendor.query.filter(func.lower(Vendor.name).in_(names)).all()
    return {v.name.lower(): v for v in vendors}


# ═══════════════════════════════════════════════════════════════
# Import
# ═══════════════════════════════════════════════════════════════

def _specifications(row) -> str:
    parts = []
    if row["item_number"]:
        parts.append(f"BOQ item {row['item_number']}")
    parts.append(f"Trade: {row['category']}")
    if row["material"]:
        parts.append(f"Material: {row['material']}")
    if row["brand"]:
        parts.append(f"Brand: {row['brand']}")
    return "; ".join(parts)


def _notes(row, vendor) -> str | None:
    parts = [row["notes"]] if row["notes"] else []
    if row["lead_time"] is not None:
        parts.append(f"Lead time: {row['lead_time']} days")
    if row["supplier"] and vendor is None:
        parts.append(f"Supplier: {row['supplier']} (not in vendor directory)")
    return "\n".join(parts) or None


def import_into_project(project, content: bytes, user) -> dict:
    """Create one pending procurement item per valid BOQ row."""
    result = validate_workbook(content)
    vendors = _vendor_lookup(result["valid_rows"])

    created = []
    for row in result["valid_rows"]:
        vendor = vendors.get((row["supplier"] or "").lower())
        item = ProcurementItem(
            project_id=project.id,
            name=row["description"][:255],
            description=row["description"],
            category=trade_category(row["category"]),
            quantity=row["quantity"],
            unit=row["unit_of_measure"],
            estimated_unit_cost=row["unit_price"],
            vendor_id=vendor.id if vendor else None,
            specifications=_specifications(row),
            notes=_notes(row, vendor),
            created_by_id=user.id,
        )
        item.recalculate_total()
        db.session.add(item)
        created.append(item)
    db.session.flush()

    if created:
        write_activity(project_id=project.id, entity_type="project", entity_id=project.id,
                       action="boq_imported", user_id=user.id,
                       details={"items": len(created), "errors": result["error_count"]})
    logger.info("BOQ import into project %s: %d created, %d rejected",
                project.id, len(created), result["error_count"])

    result["status"] = _import_status(result)
    result["created_count"] = len(created)
    result["created_ids"] = [i.id for i in created]
    return result


def import_into_template(template, content: bytes) -> dict:
    """Append one BOQ line per valid row to ``template``."""
    result = validate_workbook(content)
    vendors = _vendor_lookup(result["valid_rows"])

    created = []
    for row in result["valid_rows"]:
        vendor = vendors.get((row["supplier"] or "").lower())
        line = TemplateBOQItem(
            template_id=template.id,
            description=row["description"],
            category=row["category"],
            quantity=row["quantity"],
            unit=row["unit_of_measure"],
            unit_price=row["unit_price"],
            vendor_id=vendor.id if vendor else None,
        )
        db.session.add(line)
        created.append(line)
    db.session.flush()

    logger.info("BOQ import into template %s: %d created, %d rejected",
                template.id, len(created), result["error_count"])
    result["status"] = _import_status(result)
    result["created_count"] = len(created)
    result["created_ids"] = [line.id for line in created]
    return result


# ═══════════════════════════════════════════════════════════════
# Gap report
# ═══════════════════════════════════════════════════════════════

def gap_report(project_id) -> dict:
    """Open procurement items missing cost, vendor or required date."""
    items = (ProcurementItem.query
             .filter(ProcurementItem.project_id == project_id, ProcurementItem.status != "cancelled")
             .order_by(ProcurementItem.id.asc()).all())
    gaps = []
    for item in items:
        missing = []
        if not item.estimated_unit_cost and not item.actual_unit_cost:
            missing.append("unit_cost")
        if item.vendor_id is None:
            missing.append("vendor")
        if item.required_date is None:
            missing.append("required_date")
        if missing:
            gaps.append({
                "item_id": item.id,
                "name": item.name,
                "category": item.category,
                "missing_fields": missing,
                "severity": "high" if "unit_cost" in missing else "medium",
            })
    return {
        "items": gaps,
        "total": len(gaps),
        "items_checked": len(items),
        "by_severity": {
            "high": sum(1 for g in gaps if g["severity"] == "high"),
            "medium": sum(1 for g in gaps if g["severity"] == "medium"),
        },
    }
