"""
Cash bill spreadsheet
=====================

One printable bill per member for a monthly meeting, laid out two bills per
row on a single worksheet. Figures come from the members' monthly records.
"""
from sqlalchemy.orm import Session
from sqlalchemy import func
from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, Side
from openpyxl.utils import get_column_letter
from lendcircle.core.config import settings
from lendcircle.models.monthly import MonthlyLoanRecord
from lendcircle.models.profile import Profile
from lendcircle.services.errors import NotFoundError
from lendcircle.services.ledger import ZERO, clamp_available, compute_interest_due, credit_ceiling
from lendcircle.services.monthly import parse_period_key
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from io import BytesIO
from uuid import UUID
from typing import List, Optional
import logging
import re

logger = logging.getLogger(__name__)

BLUE = "FF0B2E6F"
INDIAN_NUMBER_FORMAT = "#,##,##0.00"
BILL_ROWS = 11
COLUMN_WIDTHS = {1: 22, 2: 17.67, 3: 5, 4: 22, 5: 17.67, 6: 5}

THIN = Side(style="thin", color="FF000000")
THICK = Side(style="medium", color="FF000000")

VOUCHER_RE = re.compile(r"\bV-?\d{1,6}\b", re.IGNORECASE)
TRAILING_VOUCHER_RE = re.compile(r"^(.*?)[\s,\-]*#?(V-?\s*\d{1,6})\s*$", re.IGNORECASE)


@dataclass
class CashBillRow:
    member_id: UUID
    full_name: str
    member_code: str
    monthly_installment: Decimal
    total_loan: Decimal
    interest: Decimal
    monthly_emi: Decimal
    available_loan: Decimal
    fine: Decimal

    @property
    def total(self) -> Decimal:
        return self.monthly_installment + self.interest + self.monthly_emi + self.fine


def split_name_and_voucher(full_name: str, member_code: str = None):
    """Separate a voucher number (V-012) from a member's display name.

    An explicit member code wins; otherwise a voucher trailing the name is
    pulled out of it.
    """
    name = (full_name or "").strip()
    explicit = VOUCHER_RE.search(member_code or "")
    if explicit:
        voucher = explicit.group(0).upper()
        cleaned = re.sub(rf"[\s,\-#]*{re.escape(voucher)}$", "", name, flags=re.IGNORECASE).strip()
        return cleaned or name, voucher

    match = TRAILING_VOUCHER_RE.match(name)
    if match:
        voucher = re.sub(r"\s+", "", match.group(2)).upper()
        return match.group(1).strip() or name, voucher

    return name, (member_code or "").strip()


def _latest_period_key(db: Session) -> Optional[str]:
    return db.query(func.max(MonthlyLoanRecord.period_key)).scalar()


def collect_cash_bill_rows(db: Session, period_key: str = None, member_id: UUID = None) -> List[CashBillRow]:
    """Bill figures for a period (latest period when not given), sorted by member code."""
    if period_key:
        parse_period_key(period_key)
    else:
        period_key = _latest_period_key(db)
        if not period_key:
            raise NotFoundError("No cash bill data found")

    query = db.query(MonthlyLoanRecord, Profile).join(
        Profile, Profile.id == MonthlyLoanRecord.member_id
    ).filter(MonthlyLoanRecord.period_key == period_key)
    if member_id:
        query = query.filter(MonthlyLoanRecord.member_id == member_id)

    ceiling = credit_ceiling()
    rows = []
    for record, profile in query.all():
        installment = record.monthly_subscription or profile.monthly_subscription or Decimal(settings.DEFAULT_MONTHLY_SUBSCRIPTION)
        balance = record.closing_outstanding or ZERO
        rows.append(CashBillRow(
            member_id=profile.id,
            full_name=profile.full_name or "",
            member_code=profile.member_code or "",
            monthly_installment=Decimal(installment),
            total_loan=balance,
            interest=compute_interest_due(balance),
            monthly_emi=record.principal_paid or ZERO,
            available_loan=clamp_available(ceiling - balance),
            fine=record.penalty or ZERO,
        ))

    if not rows:
        raise NotFoundError("No cash bill data found")

    rows.sort(key=lambda row: row.member_code)
    return rows


def _border_block(ws, top: int, left: int, bottom: int, right: int) -> None:
    """Thin grid inside the block, medium outline around it."""
    for row in range(top, bottom + 1):
        for col in range(left, right + 1):
            ws.cell(row=row, column=col).border = Border(
                top=THICK if row == top else THIN,
                bottom=THICK if row == bottom else THIN,
                left=THICK if col == left else THIN,
                right=THICK if col == right else THIN,
            )


def _place_bill(ws, bill: CashBillRow, top: int, left: int, bill_date: date) -> int:
    title_row, date_row, name_row, header_row = top, top + 1, top + 2, top + 3
    first_data = header_row + 1
    total_row = first_data + 6
    amount_col = left + 1
    amount_letter = get_column_letter(amount_col)

    ws.row_dimensions[title_row].height = 24
    ws.row_dimensions[date_row].height = 16
    ws.row_dimensions[name_row].height = 18
    for row in range(header_row, total_row + 1):
        ws.row_dimensions[row].height = 26

    center = Alignment(horizontal="center", vertical="middle")
    right = Alignment(horizontal="right", vertical="middle")
    left_align = Alignment(horizontal="left", vertical="middle")

    ws.merge_cells(start_row=title_row, start_column=left, end_row=title_row, end_column=amount_col)
    cell = ws.cell(row=title_row, column=left, value=settings.CASH_BILL_TITLE)
    cell.font = Font(size=13, bold=True, color=BLUE)
    cell.alignment = center

    ws.merge_cells(start_row=date_row, start_column=left, end_row=date_row, end_column=amount_col)
    cell = ws.cell(row=date_row, column=left, value=f"Date: {bill_date.strftime('%d/%m/%Y')}")
    cell.font = Font(size=11, color=BLUE)
    cell.alignment = center

    name, voucher = split_name_and_voucher(bill.full_name, bill.member_code)
    cell = ws.cell(row=name_row, column=left, value=f"Name: {name}".strip())
    cell.font = Font(size=11, color=BLUE)
    cell.alignment = left_align
    if voucher:
        cell = ws.cell(row=name_row, column=amount_col, value=voucher)
        cell.font = Font(size=18, bold=True, color=BLUE)
        cell.alignment = center

    ws.cell(row=header_row, column=left, value="Description").font = Font(bold=True, color=BLUE)
    ws.cell(row=header_row, column=left).alignment = left_align
    ws.cell(row=header_row, column=amount_col, value="Amount to be Paid").font = Font(bold=True, color=BLUE)
    ws.cell(row=header_row, column=amount_col).alignment = right

    loan_ref = f"{amount_letter}{first_data + 1}"
    interest_rate = Decimal(str(settings.CASH_BILL_INTEREST_PERCENT)) / Decimal(100)
    lines = [
        ("Monthly Installment", float(bill.monthly_installment)),
        ("Total Loan", float(bill.total_loan)),
        ("Interest", f"=ROUND({loan_ref}*{interest_rate.normalize()},0)"),
        ("Monthly EMI", float(bill.monthly_emi)),
        ("Available Loan", float(bill.available_loan)),
        ("Fine", float(bill.fine)),
    ]
    for offset, (label, value) in enumerate(lines):
        ws.cell(row=first_data + offset, column=left, value=label)
        cell = ws.cell(row=first_data + offset, column=amount_col, value=value)
        cell.number_format = INDIAN_NUMBER_FORMAT
        cell.alignment = right

    summed = ",".join(f"{amount_letter}{first_data + offset}" for offset in (0, 2, 3, 5))
    ws.cell(row=total_row, column=left, value="Total").font = Font(bold=True)
    cell = ws.cell(row=total_row, column=amount_col, value=f"=SUM({summed})")
    cell.font = Font(bold=True)
    cell.number_format = INDIAN_NUMBER_FORMAT
    cell.alignment = right

    _border_block(ws, title_row, left, total_row, amount_col)
    return total_row - top + 1


def build_cash_bill_workbook(rows: List[CashBillRow], bill_date: date = None) -> Workbook:
    """Lay out bills two per row; a blank row follows each bill row except every third."""
    bill_date = bill_date or date.today()
    wb = Workbook()
    ws = wb.active
    ws.title = "Cash Bills"
    for col, width in COLUMN_WIDTHS.items():
        ws.column_dimensions[get_column_letter(col)].width = width

    cursor = 1
    for index in range(0, len(rows), 2):
        used = _place_bill(ws, rows[index], cursor, 1, bill_date)
        if index + 1 < len(rows):
            used = max(used, _place_bill(ws, rows[index + 1], cursor, 4, bill_date))
        bill_row_number = index // 2 + 1
        cursor += used + (0 if bill_row_number % 3 == 0 else 1)

    ws.print_area = f"A1:E{max(1, cursor - 1)}"
    return wb


def _sanitize_filename(value: str) -> str:
    return re.sub(r"[^a-zA-Z0-9_\-.]", "_", value or "")


def cash_bill_filename(rows: List[CashBillRow], member_id: UUID = None, on_date: date = None) -> str:
    stamp = (on_date or date.today()).isoformat()
    if member_id:
        single = rows[0]
        base = single.full_name.strip() or single.member_code.strip() or str(member_id)
        return f"cash-bill-{_sanitize_filename(base)}-{stamp}.xlsx"
    return f"cash-bill-all-members-{stamp}.xlsx"


def render_cash_bill(db: Session, period_key: str = None, member_id: UUID = None):
    """Build the workbook and return ``(xlsx bytes, filename, rows)``."""
    rows = collect_cash_bill_rows(db, period_key, member_id)
    wb = build_cash_bill_workbook(rows)
    output = BytesIO()
    wb.save(output)
    logger.info(f"Generated cash bill with {len(rows)} bill(s) for {period_key or 'latest period'}")
    return output.getvalue(), cash_bill_filename(rows, member_id), rows
