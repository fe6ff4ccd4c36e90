import re

_NON_DIGIT = re.compile(r"\D")
_NON_DIALABLE = re.compile(r"[^\d+]")


def format_phone_to_e164(phone: str, default_country_code: str = "+1") -> str:
    """
    Convert a loosely formatted phone number to E.164.

    Numbers that already carry a leading ``+`` are only stripped of formatting.
    Otherwise a redundant US trunk ``1`` (11 digits under ``+1``) or a national
    leading ``0`` is dropped before the default country code is prefixed.
    """
    cleaned = _NON_DIALABLE.sub("", phone)
    if cleaned.startswith("+"):
        return cleaned

    if default_country_code == "+1" and len(cleaned) == 11 and cleaned.startswith("1"):
        cleaned = cleaned[1:]
    if cleaned.startswith("0"):
        cleaned = cleaned[1:]

    return default_country_code + cleaned


def format_phone_for_display(phone: str) -> str:
    """Format US numbers as (555) 123-4567; anything else is returned as given."""
    digits = _NON_DIGIT.sub("", phone)

    if len(digits) == 10:
        return f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"
    if len(digits) == 11 and digits.startswith("1"):
        return f"+1 ({digits[1:4]}) {digits[4:7]}-{digits[7:]}"
    return phone


def is_valid_phone_number(phone: str) -> bool:
    # 7 to 15 digits covers local, US and international numbers
    digits = _NON_DIGIT.sub("", phone)
    return 7 <= len(digits) <= 15
