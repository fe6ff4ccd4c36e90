"""Unit tests for pattern-based field extraction."""

import pytest

from app.models.mortgage import ConversationPhase, HouseholdType, Intent
from app.services.data_extractor import (
    DataExtractorService,
    classify_intent,
    normalize_message,
    parse_amount,
    parse_phone,
)

COLLECTION = ConversationPhase.COLLECTION


@pytest.fixture
def extractor() -> DataExtractorService:
    return DataExtractorService()


class TestNormalization:
    def test_trailing_comma_after_number_is_removed(self):
        assert normalize_message("The price is $420,000,.") == "The price is $420,000."

    def test_grouping_commas_are_kept(self):
        assert normalize_message("I earn 1,250,000 a year") == "I earn 1,250,000 a year"

    @pytest.mark.parametrize(
        "raw,expected",
        [("$92,000", 92000), ("92k", 92000), ("80K", 80000), ("1,500.50", 1500)],
    )
    def test_parse_amount(self, raw, expected):
        assert parse_amount(raw) == expected


class TestIntentClassification:
    """Intent is only read from answers, never from questions."""

    @pytest.mark.parametrize(
        "message",
        ["I want to buy a house", "Looking to purchase my first home", "Purchasing"],
    )
    def test_purchase(self, message):
        assert classify_intent(message) == Intent.PURCHASE

    @pytest.mark.parametrize(
        "message", ["I'd like to refinance", "Refinancing my current loan please"]
    )
    def test_refinance(self, message):
        assert classify_intent(message) == Intent.REFINANCE

    def test_questions_are_ignored(self):
        assert classify_intent("Should I purchase or refinance?") is None
        assert classify_intent("Are you looking to purchase or refinance") is None

    def test_compound_phrase_alone_is_not_an_answer(self):
        assert classify_intent("not sure, purchase or refinance") is None

    def test_intent_only_extracted_in_intent_phase(self, extractor):
        assert extractor.extract("I want to buy", ConversationPhase.INTENT) == {
            "intent": Intent.PURCHASE
        }
        assert "intent" not in extractor.extract("I want to buy", COLLECTION)


class TestAmountFields:
    def test_full_and_k_notation_agree(self, extractor):
        full = extractor.extract("My annual income is $92,000", COLLECTION)
        short = extractor.extract("I make 92k a year", COLLECTION)
        assert full["gross_annual_income"] == 92000
        assert short["gross_annual_income"] == 92000

    def test_k_notation_is_not_read_as_partial_number(self, extractor):
        result = extractor.extract("My salary is 80k", COLLECTION)
        assert result["gross_annual_income"] == 80000

    def test_monthly_debts(self, extractor):
        result = extractor.extract("My monthly debts are $1,200", COLLECTION)
        assert result["monthly_debts"] == 1200

    def test_debts_amount_then_period(self, extractor):
        result = extractor.extract("I pay $450 per month on my car", COLLECTION)
        assert result["monthly_debts"] == 450

    def test_purchase_price_with_trailing_comma(self, extractor):
        result = extractor.extract("The price is $420,000,.", COLLECTION)
        assert result["purchase_price"] == 420000

    def test_home_price_k_notation(self, extractor):
        result = extractor.extract("We are looking at a 650k home", COLLECTION)
        assert result["purchase_price"] == 650000

    def test_property_value_and_loan_amount(self, extractor):
        result = extractor.extract(
            "My property is worth $800,000 and I want to borrow $400,000", COLLECTION
        )
        assert result["property_value"] == 800000
        assert result["desired_loan_amount"] == 400000

    def test_overtime_and_bonus(self, extractor):
        result = extractor.extract("I get 5k in overtime and a bonus of $10,000", COLLECTION)
        assert result["overtime"] == 5000
        assert result["bonus"] == 10000

    def test_credit_cards_and_personal_loans(self, extractor):
        result = extractor.extract(
            "Credit card limits total $15,000 and personal loan balance is $8,000",
            COLLECTION,
        )
        assert result["credit_card_limits"] == 15000
        assert result["personal_loans"] == 8000


class TestDownPayment:
    def test_percentage_uses_purchase_price_from_context(self, extractor):
        result = extractor.extract(
            "20% down", COLLECTION, existing_data={"purchase_price": 300000}
        )
        assert result["down_payment"] == 60000

    def test_percentage_uses_price_from_same_message(self, extractor):
        result = extractor.extract(
            "The purchase price is $500,000 and I can put 10% down", COLLECTION
        )
        assert result["purchase_price"] == 500000
        assert result["down_payment"] == 50000

    def test_percentage_without_price_is_omitted(self, extractor):
        result = extractor.extract("20% down", COLLECTION)
        assert "down_payment" not in result

    def test_absolute_amount(self, extractor):
        result = extractor.extract("I have $80,000 for down payment", COLLECTION)
        assert result["down_payment"] == 80000

    def test_k_notation(self, extractor):
        assert extractor.extract("60k down", COLLECTION)["down_payment"] == 60000


class TestContactFields:
    def test_email_is_lower_cased(self, extractor):
        result = extractor.extract("Email me at Jane.Smith@Example.COM", COLLECTION)
        assert result["email"] == "jane.smith@example.com"

    def test_email_needs_two_letter_tld(self, extractor):
        assert "email" not in extractor.extract("jane@example.c", COLLECTION)

    @pytest.mark.parametrize(
        "message",
        ["call me on (555) 123-4567", "my number is 555-123-4567", "5551234567"],
    )
    def test_phone_digits_only(self, extractor, message):
        assert extractor.extract(message, COLLECTION)["phone"] == "5551234567"

    def test_phone_strips_one_leading_country_code_digit(self):
        assert parse_phone("1-555-123-4567", {}) == "5551234567"
        assert parse_phone("+1 555 123 4567", {}) == "5551234567"

    def test_name(self, extractor):
        result = extractor.extract("my name is Jane Smith", COLLECTION)
        assert result["full_name"] == "Jane Smith"

    def test_lowercase_words_are_not_a_name(self, extractor):
        assert "full_name" not in extractor.extract("I am looking forward", COLLECTION)

    def test_everything_in_one_message(self, extractor):
        result = extractor.extract(
            "I'm John Doe, john@doe.io, 0412 345 678", COLLECTION
        )
        assert result["full_name"] == "John Doe"
        assert result["email"] == "john@doe.io"
        assert result["phone"] == "0412345678"


class TestCalculatorInputs:
    def test_rate_and_term(self, extractor):
        result = extractor.extract("a 30 year loan at a rate of 6.2%", COLLECTION)
        assert result["loan_term"] == 30
        assert result["interest_rate"] == pytest.approx(0.062)

    def test_hecs(self, extractor):
        assert extractor.extract("I have a HECS debt", COLLECTION)["has_hecs"] is True
        assert extractor.extract("no student loan", COLLECTION)["has_hecs"] is False

    def test_household(self, extractor):
        couple = extractor.extract("applying jointly with two kids", COLLECTION)
        assert couple["household_type"] == HouseholdType.COUPLE
        assert couple["number_of_children"] == 2
        single = extractor.extract("it's just me, no children", COLLECTION)
        assert single["household_type"] == HouseholdType.SINGLE
        assert single["number_of_children"] == 0


class TestContextFallback:
    def test_clause_keywords(self, extractor):
        result = extractor.extract(
            "Salary: around 85000; monthly repayments about 700", COLLECTION
        )
        assert result == {"gross_annual_income": 85000, "monthly_debts": 700}

    def test_grouped_numbers_survive_clause_split(self):
        result = DataExtractorService.extract_from_context(
            "deposit roughly 1,250,000. home around 2,000,000"
        )
        assert result == {"down_payment": 1250000, "purchase_price": 2000000}

    @pytest.mark.parametrize(
        "message,expected",
        [
            ("home value around 600000", {"property_value": 600000}),
            ("down payment around 80000", {"down_payment": 80000}),
            ("home around 500000", {"purchase_price": 500000}),
            ("monthly payment around 900", {"monthly_debts": 900}),
        ],
    )
    def test_keyword_precedence(self, message, expected):
        assert DataExtractorService.extract_from_context(message) == expected

    def test_first_value_per_field_wins(self):
        result = DataExtractorService.extract_from_context(
            "salary 90000, salary 95000"
        )
        assert result == {"gross_annual_income": 90000}

    def test_fallback_only_in_collection(self, extractor):
        message = "Salary: around 85000"
        assert extractor.extract(message, ConversationPhase.VERIFICATION) == {}
        assert extractor.extract(message, COLLECTION) == {"gross_annual_income": 85000}


class TestExtractorContract:
    def test_no_match_is_empty(self, extractor):
        assert extractor.extract("hello there", COLLECTION) == {}

    def test_never_emits_none(self, extractor):
        result = extractor.extract(
            "20% down, 2 kids, rate 5%, my name is Al Bo", COLLECTION
        )
        assert all(value is not None for value in result.values())

    def test_pure(self, extractor):
        args = ("I make 92k, debts are $500 monthly", COLLECTION, {"phone": "1"})
        assert extractor.extract(*args) == extractor.extract(*args)
