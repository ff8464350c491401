import re

_MIN_DIGITS = 8


def digits_only(phone: str | None) -> str:
    """Strip everything but digits from a phone number as typed into a form."""
    if not phone:
        return ""
    return re.sub(r"\D", "", phone)


def is_valid_phone(phone: str | None, min_digits: int = _MIN_DIGITS) -> bool:
    """Dealership phones are stored as plain digit strings of at least 8 digits."""
    if not phone:
        return False
    return re.fullmatch(r"\d{%d,}" % min_digits, phone.strip()) is not None


def mask_phone(phone: str | None, visible_digits: int = 2) -> str:
    normalized = digits_only(phone)
    if len(normalized) <= visible_digits:
        return normalized
    return "*" * (len(normalized) - visible_digits) + normalized[-visible_digits:]
