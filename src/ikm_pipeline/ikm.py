"""IKM (Indeks Kepuasan Masyarakat) scale conversion and quality categories.

Raw averages on a 1..N answer scale are mapped linearly onto the 1..4 IKM
scale, then banded into the four service-quality categories used on
published reports:

    (3.25, 4.00]  A  Sangat Baik
    [2.50, 3.25]  B  Baik
    (1.75, 2.50)  C  Kurang Baik
    [1.00, 1.75]  D  Tidak Baik

3.25 itself is B and 2.50 itself is B.
"""

from __future__ import annotations

import math

from .models import DEFAULT_SCALE_MAX, ServiceQuality

IKM_MIN = 1.0
IKM_MAX = 4.0

# (lower bound, lower bound inclusive, category, label, description), highest first
_BANDS: list[tuple[float, bool, str, str, str]] = [
    (3.25, False, "A", "Sangat Baik", "Excellent"),
    (2.50, True, "B", "Baik", "Good"),
    (1.75, False, "C", "Kurang Baik", "Poor"),
]
_FLOOR = ("D", "Tidak Baik", "Very Poor")

NO_DATA_DESCRIPTION = "Tidak ada data"


def convert_to_ikm(score: float | None, scale_max: int = DEFAULT_SCALE_MAX) -> float:
    """Convert a 1..scale_max average into the 1..4 IKM scale.

    No data (None or NaN) converts to the floor value 1, i.e. the worst
    category. Results are kept inside [1, 4].
    """
    if scale_max < 2:
        raise ValueError(f"scale_max must be at least 2, got {scale_max}")
    if score is None or math.isnan(score):
        return IKM_MIN
    ikm = ((score - 1) / (scale_max - 1)) * 3 + 1
    return min(IKM_MAX, max(IKM_MIN, ikm))


def _band(ikm: float) -> tuple[str, str, str]:
    for lower, inclusive, category, label, description in _BANDS:
        if ikm > lower or (inclusive and ikm == lower):
            return category, label, description
    return _FLOOR


def classify(ikm: float) -> str:
    """Quality category A/B/C/D for an IKM value."""
    return _band(ikm)[0]


def service_quality(ikm: float) -> ServiceQuality:
    category, label, description = _band(ikm)
    return ServiceQuality(category=category, label=label, description=description)


def quality_description(ikm: float, has_data: bool = True) -> str:
    """Report label such as "Baik (B)"."""
    if not has_data:
        return NO_DATA_DESCRIPTION
    category, label, _ = _band(ikm)
    return f"{label} ({category})"
