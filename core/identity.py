"""
Contact identifier normalization.

Phone numbers are canonicalized to a '+'-prefixed digit string so records
created by different flows compare equal. A bare 10-digit number is treated
as domestic and gets the deployment's default country code. This is not a
general E.164 parser: numbers from other countries must be entered with
their country code.
"""

import re

DEFAULT_COUNTRY_CODE = "91"
PLACEHOLDER_EMAIL_DOMAIN = "phone.local"

_NON_DIGITS = re.compile(r"[^0-9]")
_NATIONAL_NUMBER_LENGTH = 10


def normalize_phone(raw: str | None, country_code: str = DEFAULT_COUNTRY_CODE) -> str | None:
    """
    Canonicalize a phone number.

    Examples:
        normalize_phone("98765 43210")     -> "+919876543210"
        normalize_phone("+1 (415) 555-0100") -> "+14155550100"
        normalize_phone("abc")             -> None

    Idempotent: normalizing an already normalized value returns it unchanged.
    """
    if not raw:
        return None
    digits = _NON_DIGITS.sub("", raw)
    if not digits:
        return None
    if len(digits) == _NATIONAL_NUMBER_LENGTH:
        digits = country_code + digits
    return "+" + digits


def normalize_email(raw: str | None) -> str | None:
    """Trim and lowercase an e-mail address. Blank input gives None."""
    if not raw:
        return None
    email = raw.strip().lower()
    return email or None


def legacy_phone_candidates(raw: str | None, country_code: str = DEFAULT_COUNTRY_CODE) -> list[str]:
    """
    Raw forms a record created before normalization may have stored.

    Covers the trimmed input, its bare digits, the 10-digit national form
    and the normalized form. Order is preserved, duplicates dropped.
    """
    if not raw:
        return []
    normalized = normalize_phone(raw, country_code)
    if normalized is None:
        return []

    digits = normalized[1:]
    candidates = [raw.strip(), _NON_DIGITS.sub("", raw), normalized]
    if digits.startswith(country_code) and len(digits) == len(country_code) + _NATIONAL_NUMBER_LENGTH:
        candidates.append(digits[len(country_code):])

    seen = set()
    unique = []
    for candidate in candidates:
        if candidate and candidate not in seen:
            seen.add(candidate)
            unique.append(candidate)
    return unique


def is_placeholder_email(email: str | None) -> bool:
    """True for the synthetic addresses given to phone-only accounts."""
    if not email:
        return False
    return email.strip().lower().endswith("@" + PLACEHOLDER_EMAIL_DOMAIN)
