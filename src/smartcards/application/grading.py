"""Grading for typed answers."""


def normalize_answer(text: str) -> str:
    """Lower-case and strip surrounding whitespace (including newlines)."""
    return text.strip().lower()


def grade_answer(submitted: str, expected: str) -> bool:
    """
    Exact match after normalisation.

    No fuzzy matching: "Paris " and "paris" match, "Pariss" does not.
    """
    return normalize_answer(submitted) == normalize_answer(expected)
