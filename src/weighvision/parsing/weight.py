"""Weight extraction from scale-display text.

Values are returned in kilograms. Small numbers are read as tonnes.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WeightLimits:
    """Plausibility ranges for truck scale readings."""

    min_kg: int = 500
    max_kg: int = 80000
    tare_max_kg: int = 30000
    tonnes_min: int = 1
    tonnes_max: int = 80


DEFAULT_LIMITS = WeightLimits()

# Display glyphs the engine reads in place of digits
GLYPH_TO_DIGIT = str.maketrans({
    "o": "0", "O": "0",
    "l": "1", "I": "1", "|": "1",
    "S": "5", "s": "5",
    "B": "8", "b": "8",
    "Z": "2", "z": "2",
    "G": "9", "g": "9",
})

_UNIT = re.compile(r"(?<![A-Za-z])kg(?![A-Za-z])", re.IGNORECASE)
_BLANKS = re.compile(r"[ \t\r\f\v]+")
_SEPARATORS = re.compile(r"[.,]")

_NUMBER = r"\d{1,3}(?:[.,]\d{3})+|\d+"


def _glyph_class(char: str) -> str:
    """Character class for ``char`` in either case, before or after glyph substitution."""
    forms = {char.upper(), char.lower()}
    forms |= {form.translate(GLYPH_TO_DIGIT) for form in forms}
    return "[" + "".join(re.escape(form) for form in sorted(forms)) + "]"


def _label_pattern(labels: tuple[str, ...]) -> re.Pattern:
    # Labels are matched in normalized text, where "liquido" reads "1iquid0"
    alternation = "|".join("".join(_glyph_class(c) for c in label) for label in labels)
    return re.compile(rf"(?:{alternation})\s*[:=\-]?\s*({_NUMBER})", re.IGNORECASE)


WEIGHT_PATTERNS: tuple[re.Pattern, ...] = (
    re.compile(r"(?<!\d)(\d{1,3}[.,]\d{3})(?![.,]?\d)"),  # 12.500
    re.compile(r"(?<!\d)(\d{4,6})(?!\d)"),  # 12500
    re.compile(r"(?<!\d)(\d{1,2}[.,]\d{3}[.,]\d{3})(?!\d)"),  # 1.234.567
    _label_pattern(("PBT", "PESO", "BRUTO", "TARA", "NET", "LIQUIDO")),
    re.compile(rf"^\s*({_NUMBER})\s*$", re.MULTILINE),  # number alone on its line
)

TARE_PATTERN = _label_pattern(("TARA",))
GROSS_PATTERN = _label_pattern(("PBT", "BRUTO"))


def normalize_weight_text(text: str) -> str:
    """Substitute digit look-alikes and collapse blanks, keeping line breaks."""
    text = _UNIT.sub(" ", text or "")
    text = text.translate(GLYPH_TO_DIGIT)
    lines = (_BLANKS.sub(" ", line).strip() for line in text.splitlines())
    return "\n".join(line for line in lines if line)


def parse_number(token: str) -> int:
    """Parse ``12.500`` / ``12,500`` / ``12500`` as an integer."""
    return int(_SEPARATORS.sub("", token))


def to_kilograms(value: int, limits: WeightLimits = DEFAULT_LIMITS) -> int | None:
    """Accept plausible kilograms, scale plausible tonnes, reject the rest."""
    if limits.min_kg <= value <= limits.max_kg:
        return value
    if limits.tonnes_min <= value <= limits.tonnes_max:
        return value * 1000
    return None


def _first_weight(
    normalized: str,
    patterns: tuple[re.Pattern, ...],
    limits: WeightLimits,
    max_kg: int,
) -> int | None:
    for pattern in patterns:
        for match in pattern.finditer(normalized):
            kg = to_kilograms(parse_number(match.group(1)), limits)
            if kg is not None and kg <= max_kg:
                return kg
    return None


def extract_weight(text: str, limits: WeightLimits = DEFAULT_LIMITS) -> int | None:
    """Find the first plausible weight in display text.

    Patterns are tried in order: thousand-grouped, bare 4-6 digits,
    million-grouped, label-anchored, lone number on a line.
    """
    return _first_weight(normalize_weight_text(text), WEIGHT_PATTERNS, limits, limits.max_kg)


def extract_labeled_weights(text: str, limits: WeightLimits = DEFAULT_LIMITS) -> tuple[int | None, int | None]:
    """Read ``TARA`` and ``PBT``/``BRUTO`` values, each checked against its own range."""
    normalized = normalize_weight_text(text)
    tare = _first_weight(normalized, (TARE_PATTERN,), limits, limits.tare_max_kg)
    gross = _first_weight(normalized, (GROSS_PATTERN,), limits, limits.max_kg)
    return tare, gross


def extract_both_weights(text: str, limits: WeightLimits = DEFAULT_LIMITS) -> tuple[int | None, int | None]:
    """Extract (tare, gross) from a display that may show both.

    Labelled values win. Without labels, each line yields at most one
    weight; the smallest distinct value is the tare and the largest the
    gross. A single value is reported as gross only.
    """
    tare, gross = extract_labeled_weights(text, limits)
    if tare is not None or gross is not None:
        logger.debug("Labelled weights: tare=%s gross=%s", tare, gross)
        return tare, gross

    weights: list[int] = []
    for line in (text or "").splitlines():
        weight = extract_weight(line, limits)
        if weight is not None and weight not in weights:
            weights.append(weight)

    if len(weights) >= 2:
        return min(weights), max(weights)
    if len(weights) == 1:
        return None, weights[0]
    return None, None
