"""E.164 normalization of device phone numbers before they reach a notification payload."""

import phonenumbers


def normalize_phone(raw: str, default_region: str | None = None) -> str | None:
    """Return the E.164 form of a device phone number, or None if it cannot be parsed as valid.

    Address books store numbers as typed ("(202) 555-0101", "tel:+39 06 1234 5678").
    Numbers without a country code are read in default_region; with no region they
    only parse when they start with "+".
    """
    text = str(raw or "").strip()
    if text.lower().startswith("tel:"):
        text = text[4:].strip()
    if not text:
        return None
    try:
        parsed = phonenumbers.parse(text, default_region)
    except phonenumbers.NumberParseException:
        return None
    if not phonenumbers.is_valid_number(parsed):
        return None
    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)


def phone_normalizer(default_region: str | None = None):
    """Bind default_region into a one-argument normalizer for ContactChangeDetector."""

    def normalize(raw: str) -> str | None:
        return normalize_phone(raw, default_region=default_region)

    return normalize
