"""Pattern-based extraction of applicant fields from free-text chat messages.

Each field owns an ordered tuple of regex patterns. Patterns are tried in
order and the first one that matches wins for that field; shorthand forms
such as ``80k`` are listed before the comma-grouped forms so they are not
partially matched as ``80``. The captured text is normalised by the rule's
postprocessor. A postprocessor returning ``None`` means the match cannot be
turned into a value and the field is left out.
"""

import re
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from app.models.mortgage import ConversationPhase, HouseholdType, Intent
from app.utils.logger import LoggerMixin, log_extraction

Postprocessor = Callable[[str, Mapping[str, Any]], Any]

# Shared number shapes
AMOUNT = r"(\d+(?:,\d{3})*(?:\.\d{2})?)"
K_AMOUNT = r"(\d+k)\b"

_TRAILING_NUMBER_COMMA = re.compile(r"(\d+(?:,\d{3})*(?:\.\d{2})?),(?=[\s.!?;]|$)")
_NUMBER_COMMA = re.compile(r"(?<=\d),(?=\d{3})")
_NUMBER_COMMA_PLACEHOLDER = "NUMCOMMA"
_CLAUSE_SEPARATORS = re.compile(r"[,;.]")
_BARE_NUMBER = re.compile(r"\$?(\d+k\b|\d+(?:,\d{3})*(?:\.\d{2})?)", re.IGNORECASE)
_PHONE_EXTENSION = re.compile(r"\s*(?:ext|x|extension)\.?\s*\d{1,5}$", re.IGNORECASE)

_WORD_NUMBERS = {
    "no": 0,
    "zero": 0,
    "one": 1,
    "a": 1,
    "an": 1,
    "two": 2,
    "three": 3,
    "four": 4,
    "five": 5,
    "six": 6,
}


def parse_amount(value: str, context: Mapping[str, Any] | None = None) -> int:
    """``"$92,000" -> 92000``, ``"80k" -> 80000``; cents are truncated."""
    value = value.strip()
    if value.lower().endswith("k"):
        return int(value[:-1]) * 1000
    return int(float(value.replace("$", "").replace(",", "")))


def parse_down_payment(value: str, context: Mapping[str, Any]) -> int | None:
    if value.endswith("%"):
        purchase_price = context.get("purchase_price")
        if not purchase_price:
            return None
        percentage = float(value[:-1])
        return round(percentage / 100 * purchase_price)
    return parse_amount(value)


def parse_phone(value: str, context: Mapping[str, Any]) -> str:
    """Keep the digits only and drop one leading ``1`` country-code artifact."""
    digits = re.sub(r"\D", "", _PHONE_EXTENSION.sub("", value))
    return re.sub(r"^1", "", digits, count=1)


def parse_email(value: str, context: Mapping[str, Any]) -> str:
    return value.lower().strip()


def parse_name(value: str, context: Mapping[str, Any]) -> str:
    return " ".join(value.split())


def parse_percent_rate(value: str, context: Mapping[str, Any]) -> float:
    return round(float(value) / 100, 6)


def parse_years(value: str, context: Mapping[str, Any]) -> int:
    return int(value)


def parse_count(value: str, context: Mapping[str, Any]) -> int | None:
    value = value.lower()
    if value.isdigit():
        return int(value)
    return _WORD_NUMBERS.get(value)


def parse_hecs(value: str, context: Mapping[str, Any]) -> bool:
    return not re.match(r"(?:no|don'?t|do\s+not|without)\b", value, re.IGNORECASE)


def parse_household(value: str, context: Mapping[str, Any]) -> HouseholdType:
    if re.search(r"single|just\s+me|on\s+my\s+own|by\s+myself", value, re.IGNORECASE):
        return HouseholdType.SINGLE
    return HouseholdType.COUPLE


@dataclass(frozen=True)
class ExtractionRule:
    field: str
    patterns: tuple[re.Pattern, ...]
    postprocessor: Postprocessor = parse_amount


def _compile(*patterns: str, flags: int = re.IGNORECASE) -> tuple[re.Pattern, ...]:
    return tuple(re.compile(pattern, flags) for pattern in patterns)


EXTRACTION_RULES: tuple[ExtractionRule, ...] = (
    ExtractionRule(
        field="gross_annual_income",
        patterns=_compile(
            r"(?:income|salary|earn|make)\s*(?:is|of)?\s*\$?" + K_AMOUNT,
            r"\$?" + K_AMOUNT + r"\s*(?:per year|annually|annual|yearly)",
            r"make\s+\$?" + K_AMOUNT + r"\s*(?:annually|per year|a year)?",
            r"earn\s+\$?" + K_AMOUNT + r"\s*(?:annually|per year|a year)?",
            r"(?:annual income|yearly income|income|salary|earn|make)\s*"
            r"(?:is|of|about|around)?\s*\$?" + AMOUNT,
            r"\$?" + AMOUNT + r"\s*(?:per year|annually|annual|yearly|/year|/yr)",
            r"earn\s+\$?" + AMOUNT + r"\s*(?:a year|per year)?",
            r"make\s+\$?" + AMOUNT + r"\s*(?:a year|per year)?",
        ),
    ),
    ExtractionRule(
        field="overtime",
        patterns=_compile(
            r"\$?(\d+k\b|\d+(?:,\d{3})*(?:\.\d{2})?)\s*(?:a year\s*|per year\s*)?"
            r"(?:in|of)\s*overtime",
            r"overtime\s*(?:pay|income)?\s*(?:is|of|about|around)?\s*\$?"
            r"(\d+k\b|\d+(?:,\d{3})*(?:\.\d{2})?)",
        ),
    ),
    ExtractionRule(
        field="bonus",
        patterns=_compile(
            r"\$?(\d+k\b|\d+(?:,\d{3})*(?:\.\d{2})?)\s*(?:a year\s*|per year\s*)?"
            r"(?:in\s*)?bonus(?:es)?",
            r"bonus(?:es)?\s*(?:is|of|are|about|around)?\s*\$?"
            r"(\d+k\b|\d+(?:,\d{3})*(?:\.\d{2})?)",
        ),
    ),
    ExtractionRule(
        field="monthly_debts",
        patterns=_compile(
            r"(?:monthly\s*debt\s*obligations?)\s*(?:are|is)?\s*\$?" + AMOUNT,
            r"\$?" + AMOUNT + r"\s*(?:in\s*)?(?:monthly|per month|/month|/mo)\s*"
            r"(?:debts?|payments?|obligations?|expenses?)",
            r"(?:monthly|per month)\s*(?:debts?|payments?|obligations?|expenses?)\s*"
            r"(?:are|is|of|about|total)?\s*\$?" + AMOUNT,
            r"(?:debts?|payments?|obligations?)\s*(?:are|is)?\s*\$?" + AMOUNT
            + r"\s*(?:monthly|per month|a month|/month)",
            r"pay\s+\$?" + AMOUNT + r"\s*(?:monthly|per month|a month)",
            r"\$?" + AMOUNT + r"\s*(?:in\s*)?monthly\s*(?:debt|payment)",
            r"monthly:?\s*\$?" + AMOUNT,
            r"debts?\s*(?::|are|is|of|total)?\s*\$?" + AMOUNT + r"\s*(?:monthly|/mo)?",
        ),
    ),
    ExtractionRule(
        field="purchase_price",
        patterns=_compile(
            r"purchase\s*price\s*(?:is|of)?\s*\$?" + K_AMOUNT,
            r"(?:home|house|property)\s*(?:costs?|price)\s*\$?" + K_AMOUNT,
            r"looking\s*at\s*(?:a\s*)?\$?" + K_AMOUNT + r"\s*(?:home|house|property)",
            K_AMOUNT + r"\s*(?:home|house|property)",
            r"purchase\s*price\s*(?:of\s*the\s*property\s*)?(?:I'm\s*interested\s*in\s*)?"
            r"(?:is|of|about|around)?\s*\$?" + AMOUNT,
            r"(?:home|house|property|place)\s*(?:costs?|price|is priced at|is listed at)\s*\$?"
            + AMOUNT,
            r"(?:looking at|considering|interested in|want to buy)\s*(?:a\s*)?\$?" + AMOUNT
            + r"\s*(?:home|house|property)",
            r"(?:buying|purchasing)\s*(?:a|the)?\s*(?:home|house|property)\s*(?:for|at)\s*\$?"
            + AMOUNT,
            r"\$?" + AMOUNT + r"\s*(?:home|house|property|place)",
            r"purchase\s*price\s*of\s*the\s*property\s*I'?m?\s*interested.*?(?:is|in)?\s*\$?"
            + AMOUNT,
            r"price\s*(?::|is|of|about|around)?\s*\$?" + AMOUNT,
            r"cost\s*(?::|is|of|about|around)?\s*\$?" + AMOUNT,
        ),
    ),
    ExtractionRule(
        field="down_payment",
        patterns=_compile(
            # Percentages first so "20% down" is not read as $20
            r"(\d+(?:\.\d+)?%)\s*(?:for\s*(?:the\s*)?)?(?:down|deposit)",
            r"(?:down\s*payment|deposit)\s*(?:is|of|about)?\s*(\d+(?:\.\d+)?%)",
            r"(?:have|saved)\s*\$?" + K_AMOUNT + r"\s*(?:for\s*)?down",
            r"down\s*payment\s*\$?" + K_AMOUNT,
            r"down\s*payment\s*amount\s*\$?" + K_AMOUNT,
            K_AMOUNT + r"\s*down",
            K_AMOUNT + r"\s*(?:for\s*)?down\s*payment",
            r"(?:have|saved|putting down|can put down|down payment amount)\s*\$?" + AMOUNT
            + r"\s*(?:for\s*)?(?:down payment|down|deposit)",
            r"down\s*payment\s*(?:is|of|about)?\s*\$?" + AMOUNT,
            r"\$?" + AMOUNT + r"\s*(?:for\s*)?down\s*(?:payment)?",
            r"(?:deposit|down)\s*(?:is|of)?\s*\$?" + AMOUNT,
        ),
        postprocessor=parse_down_payment,
    ),
    ExtractionRule(
        field="property_value",
        patterns=_compile(
            r"property\s*(?:value|worth)\s*(?:is\s*)?\$?" + K_AMOUNT,
            r"(?:worth|valued?\s*at)\s*\$?" + K_AMOUNT,
            r"(?:current\s*estimated\s*value|estimated\s*value)\s*"
            r"(?:of\s*(?:my|the)\s*property\s*)?(?:is\s*)?\$?" + AMOUNT,
            r"property\s*(?:is\s*)?(?:valued?|worth|appraised)\s*(?:at\s*)?\$?" + AMOUNT,
            r"(?:home|house)\s*(?:is\s*)?worth\s*\$?" + AMOUNT,
            r"(?:current|market)\s*value\s*(?:is|of)?\s*\$?" + AMOUNT,
            r"value\s*of\s*(?:my|the)\s*property\s*(?:is\s*)?\$?" + AMOUNT,
            r"valued?\s*at\s*\$?" + AMOUNT,
        ),
    ),
    ExtractionRule(
        field="desired_loan_amount",
        patterns=_compile(
            r"(?:borrow|refinance(?:\s*for)?)\s*\$?" + K_AMOUNT,
            r"(?:want to|would like to|need to|looking to)\s*"
            r"(?:borrow|refinance for|get|take out)\s*\$?" + AMOUNT,
            r"(?:loan amount|refinance amount)\s*(?:is|of|would be)?\s*\$?" + AMOUNT,
            r"(?:borrow|need|want)\s*\$?" + AMOUNT
            + r"\s*(?:from|for|in)\s*(?:the\s*)?(?:refinance|loan)",
        ),
    ),
    ExtractionRule(
        field="credit_card_limits",
        patterns=_compile(
            r"credit\s*card\s*limits?\s*(?:is|are|of|total)?\s*\$?"
            r"(\d+k\b|\d+(?:,\d{3})*(?:\.\d{2})?)",
            r"\$?(\d+k\b|\d+(?:,\d{3})*(?:\.\d{2})?)\s*(?:credit\s*card\s*limit|"
            r"limit\s*on\s*(?:my\s*)?credit\s*cards?)",
        ),
    ),
    ExtractionRule(
        field="personal_loans",
        patterns=_compile(
            r"personal\s*loans?\s*(?:balance\s*)?(?:is|are|of|owing)?\s*\$?"
            r"(\d+k\b|\d+(?:,\d{3})*(?:\.\d{2})?)",
            r"\$?(\d+k\b|\d+(?:,\d{3})*(?:\.\d{2})?)\s*(?:on|in)\s*(?:a\s*)?personal\s*loans?",
        ),
    ),
    ExtractionRule(
        field="interest_rate",
        patterns=_compile(
            r"\b(?:interest\s*)?rate\s*(?:is|of|at|around|about)?\s*(\d{1,2}(?:\.\d+)?)\s*%",
            r"(\d{1,2}(?:\.\d+)?)\s*%\s*(?:interest|rate|p\.?a\.?)",
        ),
        postprocessor=parse_percent_rate,
    ),
    ExtractionRule(
        field="loan_term",
        patterns=_compile(
            r"\b(\d{1,2})[-\s]*(?:years?|yrs?)\s*(?:loan|term|mortgage)",
            r"\b(?:loan\s*)?term\s*(?:is|of)?\s*(\d{1,2})\s*(?:years?|yrs?)",
            r"\bover\s*(\d{1,2})\s*(?:years?|yrs?)",
        ),
        postprocessor=parse_years,
    ),
    ExtractionRule(
        field="has_hecs",
        patterns=_compile(
            r"\b((?:no|don'?t\s+have\s+(?:a|any)?|do\s+not\s+have\s+(?:a|any)?|without)\s*"
            r"(?:a\s*)?(?:hecs|help\s*debt|student\s*loan|study\s*loan))\b",
            r"\b((?:have|got|with|paying\s*off)\s*(?:a\s*)?(?:hecs|help\s*debt|student\s*loan)"
            r"(?:\s*debt)?)\b",
            r"\b(hecs|student\s*loan)\b",
        ),
        postprocessor=parse_hecs,
    ),
    ExtractionRule(
        field="household_type",
        patterns=_compile(
            r"\b(i'?\s*a?m\s+single|single\s+(?:applicant|income|person)|just\s+me|"
            r"on\s+my\s+own|by\s+myself)\b",
            r"\b(my\s+(?:partner|wife|husband|spouse)|we(?:'re|\s+are)\s+a\s+couple|"
            r"joint\s+application|applying\s+(?:together|jointly))\b",
        ),
        postprocessor=parse_household,
    ),
    ExtractionRule(
        field="number_of_children",
        patterns=_compile(
            r"\b(\d+|no|zero|one|two|three|four|five|six|a|an)\s+"
            r"(?:kids?|children|child|dependants?|dependents?)\b",
        ),
        postprocessor=parse_count,
    ),
    ExtractionRule(
        field="email",
        patterns=_compile(
            r"\b([a-zA-Z0-9][a-zA-Z0-9._%+-]*@[a-zA-Z0-9][a-zA-Z0-9.-]*\.[a-zA-Z]{2,})\b",
            flags=0,
        ),
        postprocessor=parse_email,
    ),
    ExtractionRule(
        field="phone",
        patterns=_compile(
            r"\b(\d{11})\b",
            r"\b(\d{10})\b",
            r"\b((?:\+?\d{1,3}[-.\s]?)?\(?\d{3,4}\)?[-.\s]?\d{3,4}[-.\s]?\d{3,6})\b",
            r"\b(\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4})\b",
            r"\b(\d{3}[-.\s]?\d{3}[-.\s]?\d{4}(?:\s*(?:ext|x|extension)\.?\s*\d{1,5})?)",
        ),
        postprocessor=parse_phone,
    ),
    ExtractionRule(
        field="full_name",
        patterns=_compile(
            r"\b(?i:my\s*(?:full\s*)?name\s*is|i\s*am|i'm)\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+)+)",
            r"\b(?i:name|called)\s*:\s*([A-Z][a-z]+(?:\s+[A-Z][a-z]+)+)",
            flags=0,
        ),
        postprocessor=parse_name,
    ),
)

# Keyword families for the clause-level fallback, checked in this order.
# "down" precedes the debt family so "down payment" is not read as a monthly
# payment; "value" precedes "home" so "home value" is the property value.
CONTEXT_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("gross_annual_income", ("income", "earn", "make", "salary")),
    ("down_payment", ("down", "deposit")),
    ("monthly_debts", ("debt", "monthly", "payment")),
    ("property_value", ("value", "worth")),
    ("purchase_price", ("price", "cost", "purchase", "home")),
    ("desired_loan_amount", ("borrow", "loan")),
)

_QUESTION_CUES = ("?", "are you looking")
_PURCHASE_INTENT = (
    re.compile(
        r"\b(?:want|wanting|looking|planning|hoping|like|need|going)\s+to\s+"
        r"(?:purchase|buy)\b(?!\s+or\s+refinanc)"
    ),
    re.compile(r"\b(?:purchas(?:e|ing)|buy(?:ing)?)\b(?!\s+or\s+refinanc)"),
)
_REFINANCE_INTENT = (
    re.compile(
        r"\b(?:want|wanting|looking|planning|hoping|like|need|going)\s+to\s+"
        r"refinance\b(?!\s+or\s+(?:purchas|buy))"
    ),
    re.compile(r"\brefinanc(?:e|ing)\b(?!\s+or\s+(?:purchas|buy))"),
)
_COMPOUND_INTENT = re.compile(
    r"\b(?:(?:purchas\w*|buy\w*)\s+or\s+refinanc\w*|refinanc\w*\s+or\s+(?:purchas\w*|buy\w*))"
)


def normalize_message(message: str) -> str:
    """Drop a comma that trails a number, e.g. ``"$420,000,."`` -> ``"$420,000."``."""
    return _TRAILING_NUMBER_COMMA.sub(r"\1", message)


def classify_intent(message: str) -> Intent | None:
    """Classify purchase vs refinance from the user's wording.

    Questions are ignored so an echoed prompt such as "Are you looking to
    purchase or refinance?" is not mistaken for an answer.
    """
    lowered = message.lower()
    if any(cue in lowered for cue in _QUESTION_CUES):
        return None
    lowered = _COMPOUND_INTENT.sub(" ", lowered)
    for patterns, intent in (
        (_PURCHASE_INTENT, Intent.PURCHASE),
        (_REFINANCE_INTENT, Intent.REFINANCE),
    ):
        if any(pattern.search(lowered) for pattern in patterns):
            return intent
    return None


class DataExtractorService(LoggerMixin):
    """Stateless extractor; the same input always yields the same output."""

    def __init__(self, rules: tuple[ExtractionRule, ...] = EXTRACTION_RULES):
        self.rules = rules

    def extract(
        self,
        message: str,
        phase: ConversationPhase,
        existing_data: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Return the fields recognised in ``message``; absent fields are omitted."""
        context = dict(existing_data or {})
        cleaned = normalize_message(message)
        extracted: dict[str, Any] = {}

        if phase == ConversationPhase.INTENT:
            intent = classify_intent(cleaned)
            if intent is not None:
                extracted["intent"] = intent

        for rule in self.rules:
            # Fields found earlier in this message count as context too
            value = self._apply_rule(rule, cleaned, {**context, **extracted})
            if value is not None:
                extracted[rule.field] = value

        if phase == ConversationPhase.COLLECTION and not extracted:
            extracted = self.extract_from_context(cleaned)

        log_extraction(phase.value).debug(
            "Extracted fields from message", fields=sorted(extracted)
        )
        return extracted

    @staticmethod
    def _apply_rule(
        rule: ExtractionRule, message: str, context: Mapping[str, Any]
    ) -> Any:
        for pattern in rule.patterns:
            match = pattern.search(message)
            if match and match.group(1):
                return rule.postprocessor(match.group(1), context)
        return None

    @staticmethod
    def extract_from_context(message: str) -> dict[str, Any]:
        """Fallback: pair a bare number with a field keyword in the same clause."""
        extracted: dict[str, Any] = {}
        protected = _NUMBER_COMMA.sub(_NUMBER_COMMA_PLACEHOLDER, message)
        clauses = [
            clause.strip()
            for clause in _CLAUSE_SEPARATORS.split(protected)
            if clause.strip()
        ]

        for clause in clauses:
            clause = clause.replace(_NUMBER_COMMA_PLACEHOLDER, ",")
            number = _BARE_NUMBER.search(clause)
            if not number:
                continue

            lowered = clause.lower()
            for field, keywords in CONTEXT_KEYWORDS:
                if field in extracted:
                    continue
                if any(keyword in lowered for keyword in keywords):
                    extracted[field] = parse_amount(number.group(1))
                    break

        return extracted
