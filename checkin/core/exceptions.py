# checkin/core/exceptions.py
"""
Failures raised inside the question schema and ordering components.

The components convert these to ``False``/``None`` at their public method
boundary; only ``sanitize_title_to_base_name`` lets ``EmptyBaseNameError``
reach its caller.
"""


class CheckinError(Exception):
    """Base class for check-in core errors"""


class InvalidIdentifierError(CheckinError, ValueError):
    """An identifier, scope or argument was rejected before touching the database"""


class EmptyBaseNameError(InvalidIdentifierError):
    """Sanitizing a title left nothing usable"""


class ItemNotFoundError(CheckinError, LookupError):
    """The referenced row does not exist in the expected group"""
