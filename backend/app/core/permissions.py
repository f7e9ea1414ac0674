"""
Role groups for the API.
Trust: a route admits a user only when the user's role is in the route's group.
"""
from app.models.user import User, UserRole

INVOICE_CREATORS = (UserRole.ADMIN, UserRole.MANAGER, UserRole.PHARMACY, UserRole.HOSPITAL)
INVOICE_ADMINS = (UserRole.ADMIN,)
PRODUCT_EDITORS = (UserRole.ADMIN, UserRole.MANAGER, UserRole.PHARMACY)
PRODUCT_REMOVERS = (UserRole.ADMIN, UserRole.MANAGER)
AUDIT_READERS = (UserRole.ADMIN,)
USER_ADMINS = (UserRole.ADMIN,)


def user_has_role(user: User, roles) -> bool:
    return bool(user.is_active) and user.role in roles
