"""Grade scale and score arithmetic."""

from collections.abc import Iterable

# (minimum percentage, letter), highest first
GRADE_SCALE: tuple[tuple[float, str], ...] = (
    (97, "A+"),
    (93, "A"),
    (90, "A-"),
    (87, "B+"),
    (83, "B"),
    (80, "B-"),
    (77, "C+"),
    (73, "C"),
    (70, "C-"),
    (67, "D+"),
    (63, "D"),
    (60, "D-"),
)


def letter_grade(percentage: float) -> str:
    """Map a percentage to its letter grade."""
    for minimum, letter in GRADE_SCALE:
        if percentage >= minimum:
            return letter
    return "F"


def percentage(points: float, max_points: float) -> float:
    """Score as a percentage rounded to two decimals; 0 when nothing is possible."""
    if max_points <= 0:
        return 0.0
    return round(points / max_points * 100, 2)


def mean_percentage(values: Iterable[float | None]) -> float | None:
    """Mean of the non-null percentages, one decimal, or None if there are none."""
    graded = [v for v in values if v is not None]
    if not graded:
        return None
    return round(sum(graded) / len(graded), 1)
