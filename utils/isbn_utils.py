"""
ISBN utilities for matching and validating book identifiers.

Matching always compares normalized forms, so hyphen placement, spacing
and case never cause a false mismatch between a CSV and the catalog.
"""

import re

_FORMATTING = re.compile(r"[-\s]")


def normalize_isbn(isbn: str) -> str:
    """
    Normalize ISBN for matching.

    Removes hyphens and whitespace, uppercases (ISBN-10 check digit X).

    - "978-0-7432-7356-5" → "9780743273565"
    - "978 0 7432 7356 5" → "9780743273565"
    - "  978-0-7432-7356-5  " → "9780743273565"

    Args:
        isbn: Raw ISBN string

    Returns:
        Normalized ISBN
    """
    return _FORMATTING.sub("", isbn).upper().strip()


def validate_isbn13(isbn: str) -> bool:
    """
    Check ISBN-13 structure and checksum.

    Accepts any formatting that normalize_isbn strips.
    """
    digits = normalize_isbn(isbn)

    if len(digits) != 13 or not digits.isdigit():
        return False
    if not digits.startswith(("978", "979")):
        return False

    # Weights alternate 1, 3 across the first 12 digits
    total = sum(int(d) * (1 if i % 2 == 0 else 3) for i, d in enumerate(digits[:12]))
    check = (10 - (total % 10)) % 10

    return check == int(digits[12])
