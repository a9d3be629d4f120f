"""
Exceptions for the accounts app.
"""

from apps.core.exceptions import ConflictError, NotFoundError, RequestValidationError


class AccountNotFoundError(NotFoundError):
    code = "account_not_found"
    default_message = "No account found. Please register first."


class AccountExistsError(ConflictError):
    code = "account_exists"
    default_message = "An account with this email or phone already exists. Please log in instead."


class NameRequiredError(RequestValidationError):
    code = "name_required"
    default_message = "Name is required for registration (2-100 characters)"
