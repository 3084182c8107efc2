from datetime import date
from decimal import Decimal
from io import BytesIO

import pytest
from openpyxl import load_workbook

from lendcircle.models.monthly import MonthlyLoanRecord
from lendcircle.services import monthly
from lendcircle.services.cash_bill import (
    build_cash_bill_workbook,
    cash_bill_filename,
    collect_cash_bill_rows,
    render_cash_bill,
    split_name_and_voucher,
)
from lendcircle.services.errors import NotFoundError

D = Decimal


@pytest.fixture
def january(db, member, second_member):
    monthly.initialize_month(db, "2025-01")
    record = db.query(MonthlyLoanRecord).filter(
        MonthlyLoanRecord.member_id == member.id,
        MonthlyLoanRecord.period_key == "2025-01"
    ).one()
    monthly.update_record(db, record.id, {
        "new_loan_taken": "100000",
        "principal_paid": "5000",
        "penalty": "100",
    })
    return "2025-01"


def test_rows_carry_bill_figures(db, member, january):
    rows = collect_cash_bill_rows(db, january)

    assert [row.member_code for row in rows] == ["V-001", "V-002"]
    bill = rows[0]
    assert bill.monthly_installment == D("2100")
    assert bill.total_loan == D("95000")
    assert bill.interest == D("1425")
    assert bill.monthly_emi == D("5000")
    assert bill.available_loan == D("305000")
    assert bill.fine == D("100")
    assert bill.total == D("8625")


def test_available_loan_never_negative(db, member, second_member):
    monthly.initialize_month(db, "2025-01")
    record = db.query(MonthlyLoanRecord).filter(MonthlyLoanRecord.member_id == member.id).one()
    monthly.update_record(db, record.id, {"new_loan_taken": "420000"})

    rows = collect_cash_bill_rows(db, "2025-01", member_id=member.id)

    assert len(rows) == 1
    assert rows[0].available_loan == D("0")


def test_latest_period_is_default(db, member, january):
    monthly.initialize_month(db, "2025-02")

    rows = collect_cash_bill_rows(db)

    assert rows[0].total_loan == D("95000")
    assert len(rows) == 2


def test_no_records_is_not_found(db, member):
    with pytest.raises(NotFoundError):
        collect_cash_bill_rows(db, "2025-01")
    with pytest.raises(NotFoundError):
        collect_cash_bill_rows(db)


def test_workbook_layout(db, member, january):
    rows = collect_cash_bill_rows(db, january)

    ws = build_cash_bill_workbook(rows, bill_date=date(2025, 1, 11)).active

    assert ws.title == "Cash Bills"
    assert ws["A1"].value == "CASH BILL MEETING 85"
    assert ws["A2"].value == "Date: 11/01/2025"
    assert ws["A3"].value == "Name: Asha Patel"
    assert ws["B3"].value == "V-001"
    assert ws["A4"].value == "Description"
    assert ws["B4"].value == "Amount to be Paid"
    assert ws["A5"].value == "Monthly Installment"
    assert ws["B5"].value == 2100
    assert ws["B6"].value == 95000
    assert ws["B7"].value == "=ROUND(B6*0.015,0)"
    assert ws["B8"].value == 5000
    assert ws["B9"].value == 305000
    assert ws["B10"].value == 100
    assert ws["A11"].value == "Total"
    assert ws["B11"].value == "=SUM(B5,B7,B8,B10)"
    assert ws["B5"].number_format == "#,##,##0.00"
    assert ws["D3"].value == "Name: Ravi Kumar"
    assert ws["E3"].value == "V-002"
    assert ws["E7"].value == "=ROUND(E6*0.015,0)"
    merged = {str(r) for r in ws.merged_cells.ranges}
    assert {"A1:B1", "A2:B2", "D1:E1", "D2:E2"} <= merged
    assert ws["A1"].border.top.style == "medium"
    assert ws["A5"].border.top.style == "thin"
    assert ws.print_area.endswith("$A$1:$E$12")


def test_gap_rows_between_bill_rows(db, member, second_member, january):
    rows = collect_cash_bill_rows(db, january) * 4

    ws = build_cash_bill_workbook(rows).active

    # Bill rows start at 1, 13, 25 and (no gap after the third) 36
    for top in (1, 13, 25, 36):
        assert ws.cell(row=top, column=1).value == "CASH BILL MEETING 85"
    assert ws.print_area.endswith("$A$1:$E$47")


def test_render_returns_readable_xlsx(db, member, january):
    content, filename, rows = render_cash_bill(db, january, member_id=member.id)

    assert filename.startswith("cash-bill-Asha_Patel-")
    assert filename.endswith(".xlsx")
    assert len(rows) == 1
    ws = load_workbook(BytesIO(content)).active
    assert ws["B6"].value == 95000


def test_filename_for_all_members(db, member, january):
    rows = collect_cash_bill_rows(db, january)
    assert cash_bill_filename(rows, on_date=date(2025, 1, 11)) == "cash-bill-all-members-2025-01-11.xlsx"


@pytest.mark.parametrize("name, code, expected", [
    ("Asha Patel", "V-001", ("Asha Patel", "V-001")),
    ("Asha Patel V-001", "V-001", ("Asha Patel", "V-001")),
    ("Ravi Kumar, v12", None, ("Ravi Kumar", "V12")),
    ("Meena Shah", None, ("Meena Shah", "")),
])
def test_split_name_and_voucher(name, code, expected):
    assert split_name_and_voucher(name, code) == expected


def test_interest_line_rounds_like_the_bill_total(db, member):
    monthly.initialize_month(db, "2025-01")
    record = db.query(MonthlyLoanRecord).filter(MonthlyLoanRecord.member_id == member.id).one()
    monthly.update_record(db, record.id, {"new_loan_taken": "12345"})

    rows = collect_cash_bill_rows(db, "2025-01")
    ws = build_cash_bill_workbook(rows).active

    assert rows[0].interest == D("185")
    assert rows[0].total == D("2285")
    assert ws["B6"].value == 12345
    assert ws["B7"].value == "=ROUND(B6*0.015,0)"
