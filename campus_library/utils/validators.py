"""Request payload validation helpers.

Each validator returns ``(cleaned_data, error_message)``; exactly one of the
two is ``None``.
"""
import re
from typing import Any, Dict, Optional, Tuple

EMAIL_PATTERN = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
HEX_COLOR_PATTERN = re.compile(r'^#[0-9A-Fa-f]{6}$')

MIN_UNIVERSITY_ID = 1
MAX_UNIVERSITY_ID = 99999999


def is_valid_email(email: Any) -> bool:
    return isinstance(email, str) and bool(EMAIL_PATTERN.match(email))


def parse_int(value: Any, default: Optional[int] = None) -> Optional[int]:
    """Lenient int parsing for query strings."""
    if value is None or value == '':
        return default
    if isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def parse_bool(value: Any) -> Optional[bool]:
    """Accept JSON booleans and the strings true/false/1/0. None otherwise."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        return {'true': True, 'false': False, '1': True, '0': False}.get(value.strip().lower())
    return None


def validate_sign_up(data: Dict[str, Any]) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
    """Validate a sign-up payload.

    Args:
        data: Raw JSON body with fullName, email, universityId, password
            and universityCard.

    Returns:
        Tuple of (cleaned data, None) or (None, error message).
    """
    full_name = (data.get('fullName') or '').strip()
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''
    university_card = (data.get('universityCard') or '').strip()

    if len(full_name) < 3:
        return None, "Full name must be at least 3 characters"
    if len(full_name) > 255:
        return None, "Full name must be at most 255 characters"
    if not is_valid_email(email):
        return None, "Please enter a valid email address"

    university_id = parse_int(data.get('universityId'))
    if university_id is None:
        return None, "University ID must be a number"
    if not MIN_UNIVERSITY_ID <= university_id <= MAX_UNIVERSITY_ID:
        return None, "University ID must be between 1 and 99999999"

    if not university_card:
        return None, "University card is required"
    if not isinstance(password, str) or len(password) < 8:
        return None, "Password must be at least 8 characters"

    return {
        'full_name': full_name,
        'email': email,
        'university_id': university_id,
        'password': password,
        'university_card': university_card,
    }, None


BOOK_FIELDS = {
    # json key: (column, type)
    'title': ('title', str),
    'author': ('author', str),
    'genre': ('genre', str),
    'rating': ('rating', int),
    'coverUrl': ('cover_url', str),
    'coverColor': ('cover_color', str),
    'description': ('description', str),
    'totalCopies': ('total_copies', int),
    'videoUrl': ('video_url', str),
    'summary': ('summary', str),
    'isbn': ('isbn', str),
    'publicationYear': ('publication_year', int),
    'publisher': ('publisher', str),
    'language': ('language', str),
    'pageCount': ('page_count', int),
    'edition': ('edition', str),
    'isActive': ('is_active', bool),
}

REQUIRED_BOOK_FIELDS = ('title', 'author', 'genre', 'totalCopies')


def validate_book(data: Dict[str, Any], partial: bool = False) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
    """Validate a book payload and map camelCase keys to columns.

    Args:
        data: Raw JSON body.
        partial: Allow missing required fields (used for updates).

    Returns:
        Tuple of (column -> value dict, None) or (None, error message).
    """
    if not partial:
        for key in REQUIRED_BOOK_FIELDS:
            if data.get(key) in (None, ''):
                return None, f"{key} is required"

    cleaned: Dict[str, Any] = {}
    for key, (column, cast) in BOOK_FIELDS.items():
        if key not in data or data[key] is None:
            continue
        value = data[key]
        if cast is int:
            value = parse_int(value)
            if value is None:
                return None, f"{key} must be a number"
        elif cast is bool:
            value = parse_bool(value)
            if value is None:
                return None, f"{key} must be true or false"
        else:
            value = str(value).strip()
        cleaned[column] = value

    if 'rating' in cleaned and not 1 <= cleaned['rating'] <= 5:
        return None, "rating must be between 1 and 5"
    if 'total_copies' in cleaned and cleaned['total_copies'] < 1:
        return None, "totalCopies must be at least 1"
    if 'cover_color' in cleaned and not HEX_COLOR_PATTERN.match(cleaned['cover_color']):
        return None, "coverColor must be a hex color like #1A2B3C"
    for column in ('title', 'author', 'genre'):
        if column in cleaned and not cleaned[column]:
            return None, f"{column} cannot be empty"

    return cleaned, None
