from decimal import Decimal, ROUND_HALF_UP
from typing import Any, List, Tuple

from models.payroll import DeductionBreakdown
from utils.validators import to_decimal

CENT = Decimal('0.01')
ZERO = Decimal('0.00')

SSS_RATE = Decimal('0.05')
PROVIDENT_FUND_SHARE = Decimal('0.10')
PHILHEALTH_RATE = Decimal('0.05')
PHILHEALTH_FLOOR = Decimal('10000')
PHILHEALTH_CEILING = Decimal('100000')
PAGIBIG_RATE = Decimal('0.02')

# (upper bound, lower bound, base tax, marginal rate); the last bracket is open
TAX_BRACKETS: List[Tuple[Decimal, Decimal, Decimal, Decimal]] = [
    (Decimal('20833'), Decimal('0'), Decimal('0'), Decimal('0')),
    (Decimal('33333'), Decimal('20833'), Decimal('0'), Decimal('0.20')),
    (Decimal('66667'), Decimal('33333'), Decimal('2500'), Decimal('0.25')),
    (Decimal('166667'), Decimal('66667'), Decimal('10833.33'), Decimal('0.30')),
    (Decimal('666667'), Decimal('166667'), Decimal('40833.33'), Decimal('0.32')),
]
TOP_BRACKET = (Decimal('666667'), Decimal('200833.33'), Decimal('0.35'))


def round_cents(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def compute_withholding_tax(gross: Decimal) -> Decimal:
    """Monthly withholding tax on gross pay (progressive brackets)"""
    if gross <= 0:
        return ZERO
    for upper, lower, base, rate in TAX_BRACKETS:
        if gross <= upper:
            return round_cents(base + (gross - lower) * rate)
    lower, base, rate = TOP_BRACKET
    return round_cents(base + (gross - lower) * rate)


def compute_deductions(gross: Any) -> DeductionBreakdown:
    """
    Map gross pay to the statutory deduction breakdown.

    Every component is rounded to centavos before the total is summed.
    The provident fund is carved out of the SSS contribution and is
    reported on its own, outside the total.
    """
    gross = to_decimal(gross)
    if gross <= 0:
        return DeductionBreakdown()

    sss_initial = round_cents(gross * SSS_RATE)
    provident_fund = round_cents(sss_initial * PROVIDENT_FUND_SHARE)
    sss = round_cents(sss_initial - provident_fund)

    philhealth_base = min(PHILHEALTH_CEILING, max(PHILHEALTH_FLOOR, gross))
    philhealth = round_cents(philhealth_base * PHILHEALTH_RATE / 2)

    pagibig = round_cents(gross * PAGIBIG_RATE)
    tax = compute_withholding_tax(gross)

    return DeductionBreakdown(
        sss=sss,
        philhealth=philhealth,
        pagibig=pagibig,
        provident_fund=provident_fund,
        tax=tax,
        total=round_cents(sss + philhealth + pagibig + tax)
    )
