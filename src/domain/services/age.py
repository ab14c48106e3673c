"""Age calculation from a date-of-birth string."""

from datetime import date


def parse_date_of_birth(value: str) -> date:
    """Parse an ISO ``YYYY-MM-DD`` date, raising ``ValueError`` when malformed."""
    return date.fromisoformat(value.strip())


def calculate_age(date_of_birth: str | None, today: date | None = None) -> int:
    """Return whole years elapsed since ``date_of_birth``.

    Missing or unparsable dates yield 0 so that incomplete profiles can still
    be displayed.
    """
    if not date_of_birth:
        return 0
    try:
        born = parse_date_of_birth(date_of_birth)
    except ValueError:
        return 0

    today = today or date.today()
    age = today.year - born.year
    if (today.month, today.day) < (born.month, born.day):
        age -= 1
    return age
