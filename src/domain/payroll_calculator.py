"""
Payroll Calculator Module

Calculates salary figures from attendance totals and payroll fields.
"""

from dataclasses import dataclass
from typing import Iterable, List

from .attendance_logic import EmployeeStats, total
from .entities import Employee

DEFAULT_DAILY_RATE = 200000


@dataclass
class PayrollSummary:
    """Simple payroll view: worked days times daily rate, plus bonus, minus penalty."""
    daily_rate: float
    bonus: float
    penalty: float
    base_salary: float
    total_salary: float


@dataclass
class PayrollLine:
    """
    One line of the monthly payroll sheet.

    Attributes:
        employee: The employee the line belongs to
        standard_hours: Worked days (stored override or attendance total)
        shift_salary: Worked days times daily rate unless overridden
        gross_salary: Shift salary plus allowances and bonus
        total_deductions: Advances, insurance, uniform and penalty minus refunds
        net_received: Gross minus deductions
    """
    employee: Employee
    standard_hours: float
    shift_salary: float
    gross_salary: float
    total_deductions: float
    net_received: float


class PayrollCalculator:
    """
    Calculates payroll figures.

    Payroll fields missing from a record count as zero; a zero daily rate
    falls back to the configured default.
    """

    def __init__(self, default_daily_rate: float = DEFAULT_DAILY_RATE):
        self.default_daily_rate = default_daily_rate

    def daily_rate_for(self, employee: Employee) -> float:
        return employee.daily_rate or self.default_daily_rate

    def calculate_summary(self, employee: Employee, stats: EmployeeStats) -> PayrollSummary:
        """
        Calculate the summary shown next to an employee's statistics.

        Args:
            employee: The employee (payroll fields are read from it)
            stats: Statistics of the month being paid

        Returns:
            PayrollSummary
        """
        daily_rate = self.daily_rate_for(employee)
        base_salary = stats.total_work * daily_rate
        return PayrollSummary(
            daily_rate=daily_rate,
            bonus=employee.bonus,
            penalty=employee.penalty,
            base_salary=base_salary,
            total_salary=base_salary + employee.bonus - employee.penalty
        )

    def calculate_line(self, employee: Employee) -> PayrollLine:
        """Calculate one payroll sheet line from a grid row."""
        standard_hours = employee.standard_hours or total(employee.attendance)
        shift_salary = employee.shift_salary or standard_hours * self.daily_rate_for(employee)
        gross = (
            shift_salary
            + employee.responsibility_salary
            + employee.support_salary
            + employee.management_salary
            + employee.bonus
        )
        deductions = (
            employee.advance1
            + employee.advance2
            + employee.advance3
            + employee.social_insurance
            + employee.uniform
            + employee.penalty
            - employee.refund
        )
        return PayrollLine(
            employee=employee,
            standard_hours=standard_hours,
            shift_salary=shift_salary,
            gross_salary=gross,
            total_deductions=deductions,
            net_received=gross - deductions
        )

    def calculate_lines(self, employees: Iterable[Employee]) -> List[PayrollLine]:
        return [self.calculate_line(emp) for emp in employees]
