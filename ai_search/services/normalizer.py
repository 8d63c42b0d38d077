"""
Query normalization applied before any external call.

Only case and whitespace are touched; digits, currency symbols and
accented letters are kept for the extractor.
"""


def normalize_query(text: str) -> str:
    """
    Lowercase a raw query and collapse its whitespace.

    Args:
        text: Raw user input, possibly empty or very long.

    Returns:
        The normalized query, or an empty string for blank input.
    """
    if not text:
        return ""
    return " ".join(text.lower().split())
