# checkin/utils/naming.py
"""
Conversions between admin-entered question titles, stored base names and
display labels, plus the identifier check that guards every piece of
generated SQL.

    >>> sanitize_title_to_base_name("Needs Resume?")
    'needs_resume'
    >>> format_base_name_for_display("needs_resume")
    'Needs Resume'
"""
import logging
import re

from checkin.core.exceptions import EmptyBaseNameError, InvalidIdentifierError

logger = logging.getLogger(__name__)

BASE_NAME_MAX_LENGTH = 50
MAX_IDENTIFIER_LENGTH = 64
DISPLAY_PLACEHOLDER = "N/A"

_WHITESPACE_RE = re.compile(r"\s+")
_DISALLOWED_RE = re.compile(r"[^a-zA-Z0-9_]")
_IDENTIFIER_RE = re.compile(r"[a-zA-Z0-9_]+")


def sanitize_title_to_base_name(raw_title: str, max_length: int = BASE_NAME_MAX_LENGTH) -> str:
    """
    Turn a free-text title into a lowercase, underscore-delimited base name.

    Raises:
        EmptyBaseNameError: nothing usable is left after sanitizing
    """
    base_name = (raw_title or "").strip()
    base_name = _WHITESPACE_RE.sub("_", base_name)
    base_name = _DISALLOWED_RE.sub("", base_name)
    base_name = base_name.lower()
    base_name = base_name[:max_length]
    base_name = base_name.strip("_")

    if not base_name:
        logger.warning(f"Sanitizing title {raw_title!r} produced an empty base name")
        raise EmptyBaseNameError(f"Title {raw_title!r} does not contain any usable characters")

    return base_name


def format_base_name_for_display(base_name: str) -> str:
    """Format a stored base name like 'needs_resume' as 'Needs Resume'"""
    if not base_name:
        return DISPLAY_PLACEHOLDER

    label = base_name.replace("_", " ")
    # Capitalize the first letter of each word, leave the rest untouched
    return " ".join(word[:1].upper() + word[1:] for word in label.split(" "))


def is_valid_identifier(name, max_length: int = MAX_IDENTIFIER_LENGTH) -> bool:
    """Check a table/column name against the [a-zA-Z0-9_] allow-list"""
    if not isinstance(name, str) or not name:
        return False
    if len(name) > max_length:
        return False
    return _IDENTIFIER_RE.fullmatch(name) is not None


def validate_identifier(name, kind: str = "identifier", max_length: int = MAX_IDENTIFIER_LENGTH) -> str:
    """Return ``name`` unchanged or raise InvalidIdentifierError"""
    if not is_valid_identifier(name, max_length):
        raise InvalidIdentifierError(f"Invalid {kind} name {name!r}")
    return name
