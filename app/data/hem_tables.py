"""Household Expense Measure (HEM) benchmark, 24Q3.

Monthly living-expense floors keyed by household composition (``S``/``C`` plus
a child count capped at 4) and an annual income bracket.
"""

from types import MappingProxyType
from typing import Mapping

from pydantic import TypeAdapter

from app.models.mortgage import HouseholdType

INCOME_BRACKET_LOW = "0-26000"
INCOME_BRACKET_LOWER_MIDDLE = "26000-39000"
INCOME_BRACKET_UPPER_MIDDLE = "39000-52000"
INCOME_BRACKET_HIGH = "52000+"

MAX_CHILDREN_KEY = 4


def _row(low: int, lower_middle: int, upper_middle: int, high: int):
    return MappingProxyType(
        {
            INCOME_BRACKET_LOW: low,
            INCOME_BRACKET_LOWER_MIDDLE: lower_middle,
            INCOME_BRACKET_UPPER_MIDDLE: upper_middle,
            INCOME_BRACKET_HIGH: high,
        }
    )


HEM_TABLE: Mapping[str, Mapping[str, int]] = MappingProxyType(
    {
        "C0": _row(2569, 2569, 2632, 2754),
        "C1": _row(2983, 2983, 2983, 3105),
        "C2": _row(3397, 3397, 3397, 3519),
        "C3": _row(3811, 3811, 3811, 3933),
        "C4": _row(4225, 4225, 4225, 4347),
        "S0": _row(1574, 1574, 1637, 1759),
        "S1": _row(1988, 1988, 2051, 2173),
        "S2": _row(2402, 2402, 2465, 2587),
        "S3": _row(2816, 2816, 2879, 3001),
        "S4": _row(3230, 3230, 3293, 3415),
    }
)

_household_type_adapter = TypeAdapter(HouseholdType)


def hem_key(household_type: HouseholdType | str, number_of_children: int) -> str:
    """Build the table key, e.g. ``("Couple", 6) -> "C4"``.

    Raises ``pydantic.ValidationError`` for a household type other than
    Single or Couple.
    """
    household = _household_type_adapter.validate_python(household_type)
    type_code = "C" if household is HouseholdType.COUPLE else "S"
    children = min(max(int(number_of_children), 0), MAX_CHILDREN_KEY)
    return f"{type_code}{children}"


def income_bracket(annual_income: float) -> str:
    if annual_income < 26000:
        return INCOME_BRACKET_LOW
    if annual_income < 39000:
        return INCOME_BRACKET_LOWER_MIDDLE
    if annual_income < 52000:
        return INCOME_BRACKET_UPPER_MIDDLE
    return INCOME_BRACKET_HIGH


def hem_monthly(
    household_type: HouseholdType | str,
    number_of_children: int,
    annual_income: float,
) -> int:
    """Monthly HEM benchmark for a household at the given annual income."""
    return HEM_TABLE[hem_key(household_type, number_of_children)][
        income_bracket(annual_income)
    ]
