"""Email validation utilities with TLD checking."""

import re
from typing import Tuple

# Regex pattern for basic email format validation
EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


def is_valid_email(email: str) -> Tuple[bool, str]:
    """
    Validate email format.

    Args:
        email: Email address to validate

    Returns:
        Tuple of (is_valid, error_message)
        - is_valid: True if email is valid, False otherwise
        - error_message: Error message if invalid, empty string if valid
    """
    if not email:
        return False, "Email address is required."

    email = email.strip().lower()

    if len(email) > 255:
        return False, "Email address is too long."

    if not EMAIL_PATTERN.match(email):
        return False, "Please enter a valid email address format."

    local_part, domain = email.split("@", 1)
    if not local_part or len(local_part) > 64:
        return False, "Invalid email address format."

    # TLD must be letters only, at least 2 characters
    tld = domain.rsplit(".", 1)[-1]
    if len(tld) < 2 or not tld.isalpha():
        return False, "Email address must have a valid top-level domain (e.g., .com, .edu)."

    return True, ""


def validate_email_format(email: str) -> str:
    """Return an error message for an invalid email, or an empty string."""
    is_valid, error_message = is_valid_email(email)
    return error_message
