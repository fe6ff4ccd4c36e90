from app.data.hem_tables import hem_monthly
from app.data.tax_tables import net_weekly_income
from app.models.mortgage import (
    ApplicantData,
    BorrowingCapacityRequest,
    BorrowingCapacityResult,
    CollectedData,
    ExpenseData,
    HouseholdData,
    HouseholdType,
    Intent,
    LoanData,
    LoanPurpose,
)
from app.utils.logger import LoggerMixin, get_logger, log_borrowing_calculation

# Serviceability parameters from the reference affordability spreadsheet
AFFORDABILITY_FLOOR = 0.0575
AFFORDABILITY_BUFFER = 0.03
CREDIT_CARD_RATE = 0.038
PERSONAL_LOAN_FLOOR_RATE = 0.10
PERSONAL_LOAN_TERM_MONTHS = 36
RENTAL_INCOME_SHADING = 0.75
MIN_CAPACITY_FACTOR = 0.9


def monthly_payment(principal: float, monthly_rate: float, number_of_payments: int) -> float:
    """Level repayment for an amortizing loan (PMT)."""
    if monthly_rate == 0:
        return principal / number_of_payments
    growth = (1 + monthly_rate) ** number_of_payments
    return principal * (monthly_rate * growth) / (growth - 1)


def max_principal(affordable_payment: float, annual_rate: float, term_years: int) -> float:
    """Largest principal a monthly payment can service (inverse PMT)."""
    if affordable_payment <= 0:
        return 0.0
    monthly_rate = annual_rate / 12
    number_of_payments = term_years * 12
    if monthly_rate == 0:
        return affordable_payment * number_of_payments
    growth = (1 + monthly_rate) ** number_of_payments
    factor = (monthly_rate * growth) / (growth - 1)
    return affordable_payment / factor


def round_to_thousand(amount: float) -> int:
    return int(round(amount / 1000)) * 1000


class BorrowingCapacityService(LoggerMixin):
    """Service to estimate borrowing capacity from income, household and debts"""

    @staticmethod
    def calculate_net_monthly_income(applicant: ApplicantData) -> float:
        """Employment income net of withholding plus untaxed other income, per month"""
        gross_annual_employment = applicant.salary + applicant.overtime + applicant.bonus
        gross_weekly = gross_annual_employment / 52
        net_monthly_employment = net_weekly_income(gross_weekly, applicant.has_hecs) * 52 / 12

        other_monthly_income = (
            applicant.non_taxable_income
            + applicant.rental_income * RENTAL_INCOME_SHADING
            + applicant.government_payments
            + applicant.investment_income
        ) / 12

        return net_monthly_employment + other_monthly_income

    @staticmethod
    def calculate_monthly_expenses(
        household: HouseholdData, annual_net_income: float, expenses: ExpenseData
    ) -> float:
        """HEM-floored living expenses plus servicing of other debts"""
        hem_baseline = hem_monthly(
            household.type, household.number_of_children, annual_net_income
        )
        living_expenses = max(hem_baseline, expenses.general_living_expenses)

        debt_servicing = 0.0
        if expenses.credit_card_limits:
            debt_servicing += expenses.credit_card_limits * CREDIT_CARD_RATE
        if expenses.personal_loans:
            debt_servicing += monthly_payment(
                expenses.personal_loans,
                PERSONAL_LOAN_FLOOR_RATE / 12,
                PERSONAL_LOAN_TERM_MONTHS,
            )
        if expenses.other_loans:
            debt_servicing += expenses.other_loans

        return living_expenses + debt_servicing

    @staticmethod
    def assessment_rate(interest_rate: float) -> float:
        return max(AFFORDABILITY_FLOOR, interest_rate + AFFORDABILITY_BUFFER)

    @classmethod
    def calculate(
        cls,
        applicant1: ApplicantData,
        household: HouseholdData,
        loan: LoanData,
        expenses: ExpenseData,
        applicant2: ApplicantData | None = None,
    ) -> BorrowingCapacityResult:
        """Estimate the borrowing range for one or two applicants"""
        logger = log_borrowing_calculation(
            has_second_applicant=applicant2 is not None,
            loan_purpose=loan.purpose.value,
            requested_amount=loan.loan_amount or None,
        )

        applicant1_net = cls.calculate_net_monthly_income(applicant1)
        applicant2_net = (
            cls.calculate_net_monthly_income(applicant2) if applicant2 else None
        )
        total_net_income = applicant1_net + (applicant2_net or 0)

        # HEM is bracketed on annual *net* income
        monthly_expenses = cls.calculate_monthly_expenses(
            household, total_net_income * 12, expenses
        )
        monthly_surplus = total_net_income - monthly_expenses
        assessment_rate = cls.assessment_rate(loan.interest_rate)

        max_loan = max_principal(monthly_surplus, assessment_rate, loan.loan_term)
        min_loan = max_loan * MIN_CAPACITY_FACTOR

        result = BorrowingCapacityResult(
            max_borrowing_capacity=round_to_thousand(max_loan),
            min_borrowing_capacity=round_to_thousand(min_loan),
            net_monthly_income=round(total_net_income),
            monthly_expenses=round(monthly_expenses),
            monthly_surplus=round(monthly_surplus),
            assessment_rate=assessment_rate,
            applicant1_net_monthly=round(applicant1_net),
            applicant2_net_monthly=(
                round(applicant2_net) if applicant2_net is not None else None
            ),
        )

        if monthly_surplus <= 0:
            logger.warning(
                "No monthly surplus, borrowing capacity is zero",
                net_monthly_income=result.net_monthly_income,
                monthly_expenses=result.monthly_expenses,
            )

        logger.info(
            "Borrowing capacity calculated",
            net_monthly_income=result.net_monthly_income,
            monthly_expenses=result.monthly_expenses,
            monthly_surplus=result.monthly_surplus,
            assessment_rate=assessment_rate,
            max_borrowing_capacity=result.max_borrowing_capacity,
        )
        return result

    @classmethod
    def calculate_from_request(
        cls, request: BorrowingCapacityRequest
    ) -> BorrowingCapacityResult:
        return cls.calculate(
            request.applicant1,
            request.household,
            request.loan,
            request.expenses,
            applicant2=request.applicant2,
        )

    @staticmethod
    def build_request(
        data: CollectedData,
        intent: Intent | None,
        default_interest_rate: float = 0.045,
        default_loan_term: int = 30,
    ) -> BorrowingCapacityRequest:
        """Map conversation data onto a calculation request.

        Declared monthly debts stand in for general living expenses; anything
        the conversation did not collect falls back to the given defaults.
        """
        logger = get_logger(__name__)

        applicant1 = ApplicantData(
            salary=data.gross_annual_income or 0,
            overtime=data.overtime or 0,
            bonus=data.bonus or 0,
            has_hecs=bool(data.has_hecs),
        )
        loan = LoanData(
            purpose=(
                LoanPurpose.REFINANCE if intent == Intent.REFINANCE else LoanPurpose.PURCHASE
            ),
            loan_amount=data.desired_loan_amount or data.purchase_price or 0,
            interest_rate=(
                data.interest_rate if data.interest_rate is not None else default_interest_rate
            ),
            loan_term=data.loan_term or default_loan_term,
        )
        household = HouseholdData(
            type=data.household_type or HouseholdType.SINGLE,
            number_of_children=data.number_of_children or 0,
        )
        expenses = ExpenseData(
            general_living_expenses=data.monthly_debts or 0,
            credit_card_limits=data.credit_card_limits or 0,
            personal_loans=data.personal_loans or 0,
            other_loans=data.other_loans or 0,
        )

        logger.debug(
            "Built calculation request from conversation data",
            intent=intent.value if intent else None,
            interest_rate=loan.interest_rate,
            loan_term=loan.loan_term,
        )
        return BorrowingCapacityRequest(
            applicant1=applicant1, loan=loan, household=household, expenses=expenses
        )

    @classmethod
    def calculate_for_conversation(
        cls,
        data: CollectedData,
        intent: Intent | None,
        default_interest_rate: float = 0.045,
        default_loan_term: int = 30,
    ) -> BorrowingCapacityResult:
        request = cls.build_request(data, intent, default_interest_rate, default_loan_term)
        return cls.calculate_from_request(request)
