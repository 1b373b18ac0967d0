"""
Password Policy Validation

A password must be 8 to 72 characters long and contain at least one
uppercase letter and one digit. The upper bound is bcrypt's: it hashes only
the first 72 bytes, so the limit is measured on the UTF-8 encoding.
"""
import re
from typing import Callable, List, Tuple

MIN_LENGTH = 8
MAX_LENGTH = 72

# (passes, message) pairs, checked in order; every failing rule is reported.
RULES: List[Tuple[Callable[[str], bool], str]] = [
    (lambda pw: len(pw) >= MIN_LENGTH,
     f"Password must be at least {MIN_LENGTH} characters."),
    (lambda pw: len(pw.encode("utf-8")) <= MAX_LENGTH,
     f"Password must not exceed {MAX_LENGTH} characters (bcrypt limit)."),
    (lambda pw: re.search(r"[A-Z]", pw) is not None,
     "Password must contain at least one uppercase letter."),
    (lambda pw: re.search(r"[0-9]", pw) is not None,
     "Password must contain at least one number."),
]


def validate_password(password: str) -> Tuple[bool, List[str]]:
    """
    Check ``password`` against every rule.

    Returns:
        Tuple of (is_valid, list_of_error_messages)
    """
    errors = [message for passes, message in RULES if not passes(password)]
    return len(errors) == 0, errors
