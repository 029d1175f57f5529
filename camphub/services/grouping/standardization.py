import re
from datetime import date, datetime, timedelta
from typing import List, Optional, Union

from .friend_clustering import match_friend_requests
from .types import Camper, GroupingConfig, RawCamper

_PRE_K = re.compile(r"^(pre-?k|pre-?kindergarten|pk|preschool)$")
_KINDERGARTEN = re.compile(r"^(k|kinder|kindergarten)$")
_NUMERIC = re.compile(r"^(?:grade\s*)?(\d{1,2})(?:st|nd|rd|th)?(?:\s*grade)?$")

_ORDINALS = {
    "first": 1, "second": 2, "third": 3, "fourth": 4, "fifth": 5, "sixth": 6,
    "seventh": 7, "eighth": 8, "ninth": 9, "tenth": 10, "eleventh": 11, "twelfth": 12,
}
_CARDINALS = {
    "one": 1, "two": 2, "three": 3, "four": 4, "five": 5, "six": 6,
    "seven": 7, "eight": 8, "nine": 9, "ten": 10, "eleven": 11, "twelve": 12,
}


def age_at(dob: date, on: date) -> int:
    age = on.year - dob.year
    if (on.month, on.day) < (dob.month, dob.day):
        age -= 1
    return max(0, age)


def age_months_at(dob: date, on: date) -> int:
    months = (on.year - dob.year) * 12 + (on.month - dob.month)
    if on.day < dob.day:
        months -= 1
    return max(0, months)


def parse_grade(text: Optional[str]) -> Optional[int]:
    """Parse a free-text grade into -1 (Pre-K), 0 (K) or 1..12"""
    if not text or not text.strip():
        return None
    value = " ".join(text.lower().strip().split())

    if _PRE_K.match(value):
        return -1
    if _KINDERGARTEN.match(value):
        return 0

    match = _NUMERIC.match(value)
    if match:
        grade = int(match.group(1))
        return grade if 1 <= grade <= 12 else None

    words = re.findall(r"[a-z]+", value)
    for word in words:
        if word in _ORDINALS:
            return _ORDINALS[word]
    for word in words:
        if word in _CARDINALS:
            return _CARDINALS[word]
    return None


def grade_from_dob(dob: date, camp_start: date, cutoff_month: int = 9) -> int:
    year = camp_start.year if camp_start.month >= cutoff_month else camp_start.year - 1
    school_year_start = date(year, cutoff_month, 1)
    return max(-1, min(12, age_at(dob, school_year_start) - 5))


def format_grade(grade: int) -> str:
    if grade == -1:
        return "Pre-K"
    if grade == 0:
        return "K"
    if grade == 1:
        return "1st"
    if grade == 2:
        return "2nd"
    if grade == 3:
        return "3rd"
    return f"{grade}th"


def format_grade_range(low: int, high: int) -> str:
    if low == high:
        return format_grade(low)
    return f"{format_grade(low)} - {format_grade(high)}"


def has_grade_discrepancy(reported: Optional[int], computed: int) -> bool:
    if reported is None:
        return False
    return abs(reported - computed) > 1


def discrepancy_note(reported: int, computed: int, dob: date, camp_start: date) -> str:
    age = age_at(dob, camp_start)
    note = (
        f"Parent reported {format_grade(reported)}, but DOB ({age} years old at camp) "
        f"suggests {format_grade(computed)}."
    )
    if reported > computed:
        return note + " The parent may have entered the upcoming school year grade."
    return note + " The camper may have been held back or there may be a data entry error."


def is_late_registration(
    registered_at: Optional[Union[date, datetime]], camp_start: date, late_days: int = 7
) -> bool:
    if registered_at is None:
        return False
    if isinstance(registered_at, datetime):
        start = datetime.combine(camp_start, datetime.min.time())
        return start - registered_at < timedelta(days=late_days)
    return (camp_start - registered_at).days < late_days


def standardize(raw: RawCamper, camp_start: date, config: Optional[GroupingConfig] = None) -> Camper:
    config = config or GroupingConfig()
    reported = parse_grade(raw.reported_grade)
    computed = grade_from_dob(raw.date_of_birth, camp_start, config.school_year_cutoff_month)
    discrepancy = has_grade_discrepancy(reported, computed)

    return Camper(
        athlete_id=raw.athlete_id,
        registration_id=raw.registration_id,
        first_name=raw.first_name,
        last_name=raw.last_name,
        date_of_birth=raw.date_of_birth,
        age_at_camp_start=age_at(raw.date_of_birth, camp_start),
        age_months_at_camp_start=age_months_at(raw.date_of_birth, camp_start),
        reported_grade=raw.reported_grade,
        reported_grade_normalized=reported,
        computed_grade=computed,
        grade=reported if reported is not None else computed,
        grade_discrepancy=discrepancy,
        grade_discrepancy_note=(
            discrepancy_note(reported, computed, raw.date_of_birth, camp_start) if discrepancy else None
        ),
        friend_requests=[name for name in (raw.friend_requests or []) if name and name.strip()],
        registered_at=raw.registered_at,
        is_late_registration=is_late_registration(raw.registered_at, camp_start, config.late_registration_days),
    )


def standardize_all(
    raws: List[RawCamper], camp_start: date, config: Optional[GroupingConfig] = None
) -> List[Camper]:
    """Standardize every camper and resolve friend requests against the roster"""
    campers = [standardize(raw, camp_start, config) for raw in raws]
    for camper in campers:
        camper.friend_ids = match_friend_requests(camper, campers)
    return campers
