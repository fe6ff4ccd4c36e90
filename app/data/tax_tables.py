"""Weekly tax withholding tables used to net down employment income.

Each bracket applies from its threshold (inclusive) up to the next bracket's
threshold. Weekly tax for gross weekly income ``g`` is ``a_coef * g - b_coef``.
"""

from typing import NamedTuple


class TaxBracket(NamedTuple):
    threshold_weekly_income: float
    a_coef: float
    b_coef: float


STANDARD_TAX_TABLE: tuple[TaxBracket, ...] = (
    TaxBracket(361, 0.16, 57.8462),
    TaxBracket(500, 0.26, 107.8462),
    TaxBracket(625, 0.18, 57.8462),
    TaxBracket(721, 0.189, 64.3365),
    TaxBracket(865, 0.3227, 180.0385),
    TaxBracket(1282, 0.32, 176.5769),
    TaxBracket(2596, 0.39, 358.3077),
    TaxBracket(3653, 0.47, 650.6154),
)

# Study and Training Support Loan (HECS/HELP) withholding
STSL_TAX_TABLE: tuple[TaxBracket, ...] = (
    TaxBracket(361, 0.16, 57.8462),
    TaxBracket(500, 0.26, 107.8462),
    TaxBracket(625, 0.18, 57.8462),
    TaxBracket(721, 0.189, 64.3365),
    TaxBracket(865, 0.3227, 180.0385),
    TaxBracket(1046, 0.3327, 180.0385),
    TaxBracket(1208, 0.3427, 180.0385),
    TaxBracket(1281, 0.345, 176.5769),
    TaxBracket(1358, 0.35, 176.5769),
    TaxBracket(1439, 0.355, 176.5769),
    TaxBracket(1525, 0.36, 176.5769),
    TaxBracket(1617, 0.365, 176.5769),
    TaxBracket(1714, 0.37, 176.5769),
    TaxBracket(1817, 0.375, 176.5769),
    TaxBracket(1926, 0.38, 176.5769),
    TaxBracket(2042, 0.385, 176.5769),
    TaxBracket(2164, 0.39, 176.5769),
    TaxBracket(2294, 0.395, 176.5769),
    TaxBracket(2432, 0.4, 176.5769),
    TaxBracket(2578, 0.405, 176.5769),
    TaxBracket(2596, 0.475, 358.3077),
    TaxBracket(2732, 0.48, 358.3077),
    TaxBracket(2896, 0.485, 358.3077),
    TaxBracket(3070, 0.49, 358.3077),
    TaxBracket(3653, 0.57, 650.6154),
)


def tax_table_for(has_hecs: bool) -> tuple[TaxBracket, ...]:
    return STSL_TAX_TABLE if has_hecs else STANDARD_TAX_TABLE


def find_tax_bracket(
    gross_weekly: float, table: tuple[TaxBracket, ...]
) -> TaxBracket:
    """Return the highest bracket whose threshold is <= ``gross_weekly``.

    Incomes below every threshold fall back to the lowest bracket.
    """
    for bracket in reversed(table):
        if gross_weekly >= bracket.threshold_weekly_income:
            return bracket
    return table[0]


def weekly_tax(gross_weekly: float, has_hecs: bool) -> float:
    bracket = find_tax_bracket(gross_weekly, tax_table_for(has_hecs))
    return bracket.a_coef * gross_weekly - bracket.b_coef


def net_weekly_income(gross_weekly: float, has_hecs: bool) -> float:
    """Gross weekly income less the withholding for its bracket."""
    return gross_weekly - weekly_tax(gross_weekly, has_hecs)
