"""
User Service — profile management on top of an external identity provider.

Transaction policy: functions use flush(), never commit().

Provides:
    - upsert by open_id (sign-in / dev token issuing)
    - list, get, profile update with role changes restricted to admins
"""

import logging
from datetime import datetime, timezone

from fitout.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from fitout.models import db
from fitout.models.user import USER_ROLES, User
from fitout.utils.helpers import normalize_email, require_choice

logger = logging.getLogger(__name__)

_PROFILE_FIELDS = ("name", "phone", "job_title", "avatar_url")


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError(resource="User", resource_id=user_id)
    return user


def list_users():
    return User.query.order_by(User.name.asc(), User.id.asc())


def upsert_user(
    open_id: str,
    name: str | None = None,
    email: str | None = None,
    login_method: str | None = None,
    role: str | None = None,
) -> User:
    """
    Create or refresh a user keyed by ``open_id``; stamps ``last_signed_in``.

    Raises:
        ValidationError: missing open_id, bad email or role.
    """
    open_id = (open_id or "").strip()
    if not open_id:
        raise ValidationError("open_id is required", details={"open_id": "required"})
    email = normalize_email(email)
    if role is not None:
        require_choice(role, USER_ROLES, "role")

    user = User.query.filter_by(open_id=open_id).first()
    if user is None:
        user = User(open_id=open_id, name=name or "", role=role or "user")
        db.session.add(user)
        logger.info("User created open_id=%s", open_id)
    else:
        if name:
            user.name = name
        if role:
            user.role = role
    if email:
        user.email = email
    if login_method:
        user.login_method = login_method
    user.last_signed_in = datetime.now(timezone.utc)
    db.session.flush()
    return user


def update_user(target: User, data: dict, actor: User) -> User:
    """
    Update a profile. Users may edit themselves; admins may edit anyone and
    are the only ones allowed to change ``role``.
    """
    if actor.id != target.id and not actor.is_admin:
        raise PermissionDeniedError("You can only update your own profile")

    for field in _PROFILE_FIELDS:
        if field in data:
            setattr(target, field, data[field])
    if "email" in data:
        target.email = normalize_email(data["email"])
    if "role" in data and data["role"] != target.role:
        if not actor.is_admin:
            raise PermissionDeniedError("Only admins can change roles")
        target.role = require_choice(data["role"], USER_ROLES, "role")
        logger.info("User %s role changed to %s by %s", target.id, target.role, actor.id)
    db.session.flush()
    return target
