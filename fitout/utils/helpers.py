"""Shared parsing and persistence helpers used by blueprints and services.

parse_date:                lenient parser, None on bad input
parse_amount / parse_int:  numeric coercion that raises ValidationError
normalize_email:           email-validator check, raises ValidationError
db_commit_or_error:        uniform commit with 409/500 error responses
"""
import logging
import math
from datetime import date, datetime

from email_validator import EmailNotValidError, validate_email

from fitout.core.exceptions import ValidationError
from fitout.models import db
from fitout.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def parse_date(value):
    """Parse a date string (ISO or DD.MM.YYYY) to a date object.

    Returns None for empty/invalid input. Supports:
    - YYYY-MM-DD (ISO format)
    - YYYY-MM-DDTHH:MM:SS (datetime ISO → .date())
    - DD.MM.YYYY (European format)
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except (ValueError, TypeError):
        pass
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00")).date()
    except (ValueError, TypeError):
        pass
    try:
        return datetime.strptime(str(value), "%d.%m.%Y").date()
    except (ValueError, TypeError):
        return None


def parse_date_field(data: dict, field: str):
    """Parse ``data[field]`` as a date, raising ValidationError when it is present but invalid."""
    raw = data.get(field)
    if raw in (None, ""):
        return None
    parsed = parse_date(raw)
    if parsed is None:
        raise ValidationError(
            f"{field} must be a date (YYYY-MM-DD)", details={field: raw},
        )
    return parsed


def parse_amount(value, field: str, *, minimum: float | None = 0.0, allow_none: bool = True):
    """Coerce a money/quantity value to float.

    Raises ValidationError for non-numeric or non-finite input (NaN, Infinity)
    and for values below ``minimum``.
    """
    if value in (None, ""):
        if allow_none:
            return None
        raise ValidationError(f"{field} is required", details={field: value})
    try:
        number = round(float(value), 2)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{field} must be a number", details={field: value}) from exc
    if not math.isfinite(number):
        raise ValidationError(f"{field} must be a finite number", details={field: value})
    if minimum is not None and number < minimum:
        raise ValidationError(f"{field} must be >= {minimum:g}", details={field: value})
    return number


def parse_int(value, field: str, *, minimum: int | None = None, maximum: int | None = None):
    """Coerce ``value`` to int within optional bounds, raising ValidationError otherwise."""
    if value in (None, ""):
        return None
    if isinstance(value, float) and not value.is_integer():
        raise ValidationError(f"{field} must be an integer", details={field: value})
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{field} must be an integer", details={field: value}) from exc
    if minimum is not None and number < minimum:
        raise ValidationError(f"{field} must be >= {minimum}", details={field: value})
    if maximum is not None and number > maximum:
        raise ValidationError(f"{field} must be <= {maximum}", details={field: value})
    return number


def require_choice(value, choices, field: str):
    """Raise ValidationError unless ``value`` is one of ``choices``."""
    if value not in choices:
        raise ValidationError(
            f"Invalid {field}. Must be one of: {sorted(choices)}",
            details={field: value},
        )
    return value


def normalize_email(value, field: str = "email"):
    """Validate an optional e-mail address, returning the normalized form (or None)."""
    if value in (None, ""):
        return None
    try:
        return validate_email(str(value), check_deliverability=False).normalized
    except EmailNotValidError as exc:
        raise ValidationError(f"Invalid {field}: {exc}", details={field: value}) from exc


# ── Database commit helper ───────────────────────────────────────────────────

def db_commit_or_error():
    """Commit the current SQLAlchemy session, returning an error response on failure.

    Returns:
        None on success.
        (response, status_code) tuple on failure — ready for ``return``.

    Usage::

        err = db_commit_or_error()
        if err:
            return err

    IntegrityError → 409 (duplicate / constraint violation)
    OperationalError → 500 (connection / lock issues)
    Other → 500 (unexpected)
    """
    from sqlalchemy.exc import IntegrityError, OperationalError

    try:
        db.session.commit()
        return None
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Integrity error on commit: %s", exc.orig)
        return api_error(E.CONFLICT_DUPLICATE, "Duplicate or constraint violation")
    except OperationalError:
        db.session.rollback()
        logger.exception("Database operational error on commit")
        return api_error(E.DATABASE, "Database error")
    except Exception:
        db.session.rollback()
        logger.exception("Unexpected database error on commit")
        return api_error(E.DATABASE, "Database error")
