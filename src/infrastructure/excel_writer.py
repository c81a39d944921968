"""
Excel Writer Module

Generates formatted timesheet, payroll and template workbooks, plus the
employee list and target roster workbooks. Timesheet cell colors follow
the attendance display categories.
"""

import re
from datetime import date
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from domain.attendance_logic import cell_style, total
from domain.calendar_model import generate_days_info
from domain.entities import DayInfo, Employee, EmployeeRole, Target
from domain.payroll_calculator import PayrollCalculator
from infrastructure.logger import get_logger

logger = get_logger("ExcelWriter")

INFO_HEADERS = ['ID', 'MSNV', 'Họ và tên', 'Mục tiêu', 'Năm', 'Tháng']
TOTAL_HEADER = 'Tổng Công'

PAYROLL_HEADERS = [
    'ShiftID', 'Thang_luong', 'STT', 'Ho_va_ten', 'So_tai_khoan', 'Ten_muc_tieu',
    'Gio_cong_chuan', 'Luong_ca', 'Luong_trach_nhiem', 'Luong_ho_tro', 'Luong_quan_ly',
    'Tien_thuong', 'Tong_luong', 'Ung_luong_lan1', 'Ung_luong_lan2', 'Ung_luong_lan3',
    'Hoan_tien', 'BHXH', 'Dong_phuc', 'Tien_phat', 'Tong_con_nhan', 'Ghi_chu'
]

EMPLOYEE_HEADERS = ['STT', 'Mã NV', 'Họ Tên', 'Phòng Ban', 'Quyền Hạn', 'Mật Khẩu']
ROLE_LABELS = {EmployeeRole.ADMIN: 'Quản Trị', EmployeeRole.STAFF: 'Nhân Viên'}
TARGET_SUMMARY_HEADERS = ['STT', 'Tên Mục Tiêu', 'Số Nhân Sự']
ROSTER_HEADERS = ['STT', 'Mã NV', 'Họ Tên', 'Ca Trực']
TARGET_TEMPLATE_FILENAME = "Mau_NhapMucTieu.xlsx"

# Characters Excel does not allow in sheet names
_SHEET_TITLE_INVALID = re.compile(r'[\\/?*\[\]:]')
MAX_SHEET_TITLE = 31


def timesheet_filename(year: int, month: int) -> str:
    return f"BangChamCong_Thang{month + 1}_{year}.xlsx"


def payroll_filename(year: int, month: int) -> str:
    return f"BangLuong_Thang{month + 1}_{year}.xlsx"


def template_filename(year: int, month: int) -> str:
    return f"Mau_ChamCong_T{month + 1}_{year}.xlsx"


def employees_filename(today: Optional[date] = None) -> str:
    return f"DanhSachNhanSu_{(today or date.today()).isoformat()}.xlsx"


def targets_filename(today: Optional[date] = None) -> str:
    return f"DanhSachMucTieu_{(today or date.today()).isoformat()}.xlsx"


def sheet_title(name: str, used: Iterable[str] = ()) -> str:
    """Valid, unique worksheet title for a target name."""
    base = _SHEET_TITLE_INVALID.sub(' ', name).strip()[:MAX_SHEET_TITLE] or "Sheet"
    used = {title.lower() for title in used}
    title, counter = base, 2
    while title.lower() in used:
        suffix = f" ({counter})"
        title = base[:MAX_SHEET_TITLE - len(suffix)] + suffix
        counter += 1
    return title


class TimesheetExcelWriter:
    """
    Writes timesheet workbooks.

    Timesheet layout:
    - Row 1: Title (merged)
    - Row 3: ID | MSNV | Name | Target | Year | Month | 1..N | Total
    - Row 4: Weekday labels under the day numbers
    - Row 5+: One row per employee, then a grand total row

    Months are 0-based, like the rest of the engine.
    """

    # Color definitions keyed by attendance display category
    COLORS = {
        'green': PatternFill(start_color='C6EFCE', end_color='C6EFCE', fill_type='solid'),
        'yellow': PatternFill(start_color='FFEB9C', end_color='FFEB9C', fill_type='solid'),
        'red': PatternFill(start_color='FFC7CE', end_color='FFC7CE', fill_type='solid'),
        'blue': PatternFill(start_color='BDD7EE', end_color='BDD7EE', fill_type='solid'),
        'orange': PatternFill(start_color='F8CBAD', end_color='F8CBAD', fill_type='solid'),
        'pale_yellow': PatternFill(start_color='FFF9E5', end_color='FFF9E5', fill_type='solid'),
        'weekend_header': PatternFill(start_color='C00000', end_color='C00000', fill_type='solid'),
        'header': PatternFill(start_color='4472C4', end_color='4472C4', fill_type='solid'),
    }

    BORDER = Border(
        left=Side(style='thin'),
        right=Side(style='thin'),
        top=Side(style='thin'),
        bottom=Side(style='thin')
    )

    TITLE_ROW = 1
    HEADER_ROW = 3
    WEEKDAY_ROW = 4
    FIRST_DATA_ROW = 5
    LIST_HEADER_ROW = 4

    def __init__(self, company_name: str = "BẠCH HỔ SECURITY"):
        self.company_name = company_name

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------
    def _header_cell(self, ws, row: int, col: int, value, fill: str = 'header'):
        cell = ws.cell(row, col, value)
        cell.font = Font(bold=True, color='FFFFFF')
        cell.fill = self.COLORS[fill]
        cell.alignment = Alignment(horizontal='center', vertical='center')
        cell.border = self.BORDER
        return cell

    def _title(self, ws, text: str, last_col: int):
        ws.merge_cells(start_row=self.TITLE_ROW, start_column=1, end_row=self.TITLE_ROW, end_column=last_col)
        cell = ws.cell(self.TITLE_ROW, 1, text)
        cell.font = Font(bold=True, size=14)
        cell.alignment = Alignment(horizontal='center')
        ws.row_dimensions[self.TITLE_ROW].height = 25

    def _write_grid_headers(self, ws, days: Sequence[DayInfo]) -> int:
        """Write the two header rows; returns the total column index."""
        for col, label in enumerate(INFO_HEADERS, start=1):
            self._header_cell(ws, self.HEADER_ROW, col, label)
            self._header_cell(ws, self.WEEKDAY_ROW, col, "")

        day_col = len(INFO_HEADERS) + 1
        for offset, day in enumerate(days):
            fill = 'weekend_header' if day.is_weekend else 'header'
            self._header_cell(ws, self.HEADER_ROW, day_col + offset, day.day, fill)
            cell = self._header_cell(ws, self.WEEKDAY_ROW, day_col + offset, day.weekday_label, fill)
            cell.font = Font(bold=True, color='FFFFFF', size=8)

        total_col = day_col + len(days)
        self._header_cell(ws, self.HEADER_ROW, total_col, TOTAL_HEADER)
        self._header_cell(ws, self.WEEKDAY_ROW, total_col, "")
        return total_col

    def _set_grid_widths(self, ws, days: Sequence[DayInfo], total_col: int):
        for col, width in enumerate([12, 10, 22, 15, 6, 6], start=1):
            ws.column_dimensions[get_column_letter(col)].width = width
        for offset in range(len(days)):
            ws.column_dimensions[get_column_letter(len(INFO_HEADERS) + 1 + offset)].width = 5
        ws.column_dimensions[get_column_letter(total_col)].width = 10

    def _write_info_cells(self, ws, row: int, values: Sequence):
        for col, value in enumerate(values, start=1):
            cell = ws.cell(row, col, value)
            cell.border = self.BORDER
            cell.alignment = Alignment(vertical='center')

    # ------------------------------------------------------------------
    # Timesheet
    # ------------------------------------------------------------------
    def export_timesheet(
        self,
        employees: Sequence[Employee],
        year: int,
        month: int,
        output_path: Path
    ) -> Path:
        """
        Export grid rows with their attendance.

        Args:
            employees: Rows in display order
            year: Calendar year
            month: 0-based month
            output_path: File to write, or a directory for the default name

        Returns:
            Path to the created file
        """
        output_path = Path(output_path)
        if output_path.is_dir():
            output_path = output_path / timesheet_filename(year, month)

        days = generate_days_info(year, month)
        wb = Workbook()
        ws = wb.active
        ws.title = f"Tháng {month + 1}"

        total_col = len(INFO_HEADERS) + len(days) + 1
        self._title(ws, f"BẢNG CHẤM CÔNG THÁNG {month + 1}/{year} - {self.company_name}", total_col)
        self._write_grid_headers(ws, days)

        row = self.FIRST_DATA_ROW
        grand_total = 0.0
        for emp in employees:
            self._write_info_cells(ws, row, [
                emp.id, emp.code, emp.name, emp.department, year, month + 1
            ])
            for offset, day in enumerate(days):
                value = emp.attendance.get(day.day, "")
                cell = ws.cell(row, len(INFO_HEADERS) + 1 + offset, value or None)
                cell.border = self.BORDER
                cell.alignment = Alignment(horizontal='center')
                style = cell_style(value, day.is_weekend)
                if style:
                    cell.fill = self.COLORS[style]
            row_total = total(emp.attendance)
            grand_total += row_total
            cell = ws.cell(row, total_col, row_total)
            cell.font = Font(bold=True)
            cell.border = self.BORDER
            cell.alignment = Alignment(horizontal='center')
            row += 1

        # Grand total, one blank row below the data
        summary_row = row + 1
        ws.cell(summary_row, 4, "TỔNG CỘNG:").font = Font(bold=True)
        cell = ws.cell(summary_row, total_col, round(grand_total, 2))
        cell.font = Font(bold=True)
        cell.alignment = Alignment(horizontal='center')

        self._set_grid_widths(ws, days, total_col)
        ws.freeze_panes = ws.cell(self.FIRST_DATA_ROW, len(INFO_HEADERS) + 1)

        wb.save(output_path)
        logger.info(f"Timesheet exported: {output_path} ({len(employees)} rows)")
        return output_path

    # ------------------------------------------------------------------
    # Payroll
    # ------------------------------------------------------------------
    def export_payroll(
        self,
        employees: Sequence[Employee],
        year: int,
        month: int,
        output_path: Path,
        calculator: Optional[PayrollCalculator] = None,
        default_shift: str = '08:00 - 17:00'
    ) -> Path:
        """
        Export the monthly payroll sheet with a totals row.

        Returns:
            Path to the created file
        """
        output_path = Path(output_path)
        if output_path.is_dir():
            output_path = output_path / payroll_filename(year, month)
        calculator = calculator or PayrollCalculator()
        lines = calculator.calculate_lines(employees)

        wb = Workbook()
        ws = wb.active
        ws.title = f"Lương T{month + 1}"

        self._title(ws, f"BẢNG LƯƠNG THÁNG {month + 1}/{year} - {self.company_name}", len(PAYROLL_HEADERS))
        ws.cell(2, 1, f"Ngày xuất: {date.today().strftime('%d/%m/%Y')}")

        for col, label in enumerate(PAYROLL_HEADERS, start=1):
            self._header_cell(ws, self.HEADER_ROW + 1, col, label)

        row = self.HEADER_ROW + 2
        money_totals: List[float] = [0.0] * len(PAYROLL_HEADERS)
        for index, line in enumerate(lines, start=1):
            emp = line.employee
            values = [
                emp.shift or default_shift,
                f"{month + 1}/{year}",
                index,
                emp.name,
                emp.bank_account,
                emp.department,
                line.standard_hours,
                line.shift_salary,
                emp.responsibility_salary,
                emp.support_salary,
                emp.management_salary,
                emp.bonus,
                line.gross_salary,
                emp.advance1,
                emp.advance2,
                emp.advance3,
                emp.refund,
                emp.social_insurance,
                emp.uniform,
                emp.penalty,
                line.net_received,
                emp.note,
            ]
            for col, value in enumerate(values, start=1):
                cell = ws.cell(row, col, value)
                cell.border = self.BORDER
                if col >= 7 and isinstance(value, (int, float)):
                    cell.number_format = '#,##0'
                    money_totals[col - 1] += value
            row += 1

        ws.cell(row, 4, "TỔNG CỘNG").font = Font(bold=True)
        for col in range(8, 22):
            cell = ws.cell(row, col, money_totals[col - 1])
            cell.font = Font(bold=True)
            cell.number_format = '#,##0'

        for col in range(1, len(PAYROLL_HEADERS) + 1):
            ws.column_dimensions[get_column_letter(col)].width = 14
        ws.column_dimensions['D'].width = 22

        wb.save(output_path)
        logger.info(f"Payroll exported: {output_path} ({len(lines)} rows)")
        return output_path

    # ------------------------------------------------------------------
    # Template
    # ------------------------------------------------------------------
    def write_template(self, year: int, month: int, output_path: Path) -> Path:
        """
        Write an import template with two sample rows and one empty row.

        Returns:
            Path to the created file
        """
        output_path = Path(output_path)
        if output_path.is_dir():
            output_path = output_path / template_filename(year, month)

        days = generate_days_info(year, month)
        wb = Workbook()
        ws = wb.active
        ws.title = "Mẫu Chấm Công"

        total_col = len(INFO_HEADERS) + len(days) + 1
        self._title(ws, "MẪU NHẬP BẢNG CHẤM CÔNG", total_col)
        ws.cell(2, 1, f"Fill in data from row {self.FIRST_DATA_ROW}; do not delete the header rows.")
        self._write_grid_headers(ws, days)

        samples = [
            ('001', 'Nguyễn Văn A', 'Văn Phòng', lambda i, d: 'P' if i in (4, 15) else '1'),
            ('002', 'Trần Thị B', 'Kho Hàng', lambda i, d: '1'),
        ]
        row = self.FIRST_DATA_ROW
        for code, name, department, pattern in samples:
            self._write_info_cells(ws, row, ['', code, name, department, year, month + 1])
            for offset, day in enumerate(days):
                value = '' if day.is_weekend else pattern(offset, day)
                cell = ws.cell(row, len(INFO_HEADERS) + 1 + offset, value or None)
                cell.border = self.BORDER
            row += 1
        self._write_info_cells(ws, row, ['', '', '', '', year, month + 1])

        notes = [
            "GHI CHÚ:",
            "- MSNV: required, used to match existing employees",
            "- Họ và tên: optional when MSNV is given",
            "- Values: 1 (full day), 0.5 (half day), P (leave), CN (weekend/holiday)",
        ]
        for offset, note in enumerate(notes, start=2):
            ws.cell(row + offset, 1, note)

        self._set_grid_widths(ws, days, total_col)
        wb.save(output_path)
        logger.info(f"Import template written: {output_path}")
        return output_path

    # ------------------------------------------------------------------
    # Employee list
    # ------------------------------------------------------------------
    def _list_header(self, ws, row: int, labels: Sequence[str], widths: Sequence[int]):
        for col, (label, width) in enumerate(zip(labels, widths), start=1):
            self._header_cell(ws, row, col, label)
            ws.column_dimensions[get_column_letter(col)].width = width

    def export_employees(self, employees: Sequence[Employee], output_path: Path) -> Path:
        """
        Export the employee master list.

        Layout: title, export date, header on row 4, one row per
        employee, then a count line. The file can be imported back.

        Returns:
            Path to the created file
        """
        output_path = Path(output_path)
        if output_path.is_dir():
            output_path = output_path / employees_filename()

        wb = Workbook()
        ws = wb.active
        ws.title = "Nhân Sự"

        self._title(ws, f"DANH SÁCH NHÂN SỰ - {self.company_name}", len(EMPLOYEE_HEADERS))
        ws.cell(2, 1, f"Xuất ngày: {date.today().strftime('%d/%m/%Y')}")
        self._list_header(ws, self.LIST_HEADER_ROW, EMPLOYEE_HEADERS, [6, 10, 25, 18, 12, 12])

        row = self.LIST_HEADER_ROW + 1
        for index, emp in enumerate(employees, start=1):
            self._write_info_cells(ws, row, [
                index,
                emp.code,
                emp.name,
                emp.department,
                ROLE_LABELS[emp.role],
                emp.password,
            ])
            row += 1
        ws.cell(row + 1, 1, f"Tổng số: {len(employees)} nhân viên").font = Font(bold=True)

        wb.save(output_path)
        logger.info(f"Employee list exported: {output_path} ({len(employees)} rows)")
        return output_path

    # ------------------------------------------------------------------
    # Targets
    # ------------------------------------------------------------------
    def _roster_sheet(self, wb, title: str, target_name: str, rows: Sequence[Sequence]):
        ws = wb.create_sheet(title)
        ws.cell(1, 1, f"MỤC TIÊU: {target_name}").font = Font(bold=True, size=12)
        self._list_header(ws, self.HEADER_ROW, ROSTER_HEADERS, [6, 10, 25, 16])
        for offset, values in enumerate(rows, start=1):
            self._write_info_cells(ws, self.HEADER_ROW + offset, values)
        return ws

    def export_targets(
        self,
        targets: Sequence[Target],
        employees: Sequence[Employee],
        output_path: Path
    ) -> Path:
        """
        Export targets: a summary sheet plus one roster sheet per target.

        Roster sheets are named after the target (shortened and made
        unique to fit sheet-name rules); the full name is kept in the
        sheet title so the file can be imported back.

        Returns:
            Path to the created file
        """
        output_path = Path(output_path)
        if output_path.is_dir():
            output_path = output_path / targets_filename()
        by_id = {emp.id: emp for emp in employees}

        wb = Workbook()
        ws = wb.active
        ws.title = "Tổng Quan"
        self._title(ws, f"DANH SÁCH MỤC TIÊU - {self.company_name}", len(TARGET_SUMMARY_HEADERS))
        ws.cell(2, 1, f"Xuất ngày: {date.today().strftime('%d/%m/%Y')}")
        self._list_header(ws, self.LIST_HEADER_ROW, TARGET_SUMMARY_HEADERS, [6, 30, 12])
        row = self.LIST_HEADER_ROW + 1
        for index, target in enumerate(targets, start=1):
            self._write_info_cells(ws, row, [index, target.name, len(target.roster)])
            row += 1
        ws.cell(row + 1, 1, f"Tổng số: {len(targets)} mục tiêu").font = Font(bold=True)

        used_titles = {ws.title}
        for target in targets:
            rows = []
            for index, entry in enumerate(target.roster, start=1):
                emp = by_id.get(entry.employee_id)
                rows.append([
                    index,
                    emp.code if emp else "",
                    emp.name if emp else "Không tìm thấy",
                    entry.shift,
                ])
            title = sheet_title(target.name, used_titles)
            used_titles.add(title)
            self._roster_sheet(wb, title, target.name, rows)

        wb.save(output_path)
        logger.info(f"Targets exported: {output_path} ({len(targets)} targets)")
        return output_path

    def write_target_template(self, output_path: Path) -> Path:
        """
        Write a roster import template: instructions plus two sample targets.

        Returns:
            Path to the created file
        """
        output_path = Path(output_path)
        if output_path.is_dir():
            output_path = output_path / TARGET_TEMPLATE_FILENAME

        wb = Workbook()
        ws = wb.active
        ws.title = "Hướng Dẫn"
        instructions = [
            "HƯỚNG DẪN NHẬP MỤC TIÊU",
            "",
            "Option 1: one sheet per target",
            "- Sheet title row 'MỤC TIÊU: <name>' or the sheet name gives the target name",
            "- Columns: STT, Mã NV, Họ Tên, Ca Trực",
            "",
            "Option 2: one sheet for all targets",
            "- Columns: Mục Tiêu, Mã NV, Họ Tên, Ca Trực",
            "",
            "NOTES:",
            "- Mã NV must exist in the employee list",
            "- Ca Trực uses 24h time: '08:00 - 17:00'",
        ]
        for row, text in enumerate(instructions, start=1):
            ws.cell(row, 1, text or None)
        ws.cell(1, 1).font = Font(bold=True, size=14)
        ws.column_dimensions['A'].width = 70

        self._roster_sheet(wb, "Văn Phòng Chính", "Văn Phòng Chính", [
            [1, '001', 'Nguyễn Văn A', '08:00 - 17:00'],
            [2, '002', 'Trần Thị B', '06:00 - 14:00'],
            [3, '', '', ''],
        ])
        self._roster_sheet(wb, "Kho Hàng", "Kho Hàng", [
            [1, '003', 'Lê Văn C', '22:00 - 06:00'],
            [2, '', '', ''],
        ])

        wb.save(output_path)
        logger.info(f"Target template written: {output_path}")
        return output_path
