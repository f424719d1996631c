"""Brazilian plate post-processing: cleanup, positional correction, voting.

Plates are 7 characters. Mercosul: ``LLLNLNN``. Legacy: ``LLLNNNN``.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from dataclasses import dataclass
from typing import Iterable

logger = logging.getLogger(__name__)

PLATE_LENGTH = 7

MERCOSUL_PATTERN = re.compile(r"^[A-Z]{3}[0-9][A-Z][0-9]{2}$")
LEGACY_PATTERN = re.compile(r"^[A-Z]{3}[0-9]{4}$")
LOOSE_PATTERN = re.compile(r"[A-Z0-9]{3}[0-9A-Z][A-Z0-9][0-9A-Z]{2}")

# Glyphs the engine commonly confuses, applied by position
DIGIT_TO_LETTER: dict[str, str] = {
    "0": "O", "1": "I", "5": "S", "8": "B", "2": "Z", "6": "G", "4": "A",
}
LETTER_TO_DIGIT: dict[str, str] = {
    "O": "0", "Q": "0", "D": "0",
    "I": "1", "L": "1",
    "Z": "2",
    "E": "3",
    "A": "4",
    "S": "5",
    "G": "6",
    "T": "7",
    "B": "8",
}

VALID_SCORE = 100
PLAUSIBLE_SCORE = 50  # exactly 7 characters, grammar still broken
LOOSE_SCORE = 40  # 7-character run found inside longer text

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")


@dataclass(frozen=True)
class PlateCandidate:
    """A corrected 7-character reading from one pass."""

    value: str
    valid: bool
    score: int


@dataclass(frozen=True)
class RankedCandidate:
    """A distinct candidate value with its cross-pass tally."""

    value: str
    valid: bool
    occurrences: int
    score: int


def clean_plate_text(text: str) -> str:
    """Drop everything but ASCII letters and digits, uppercase the rest."""
    return _NON_ALNUM.sub("", text or "").upper()


def _is_digit(char: str) -> bool:
    return "0" <= char <= "9"


def _as_letter(char: str) -> str:
    return DIGIT_TO_LETTER.get(char, char) if _is_digit(char) else char


def _as_digit(char: str) -> str:
    return char if _is_digit(char) else LETTER_TO_DIGIT.get(char, char)


def correct_plate_characters(text: str) -> str:
    """Swap confusable glyphs to what the plate grammar expects at each position.

    Positions 0-2 take letters, position 3 a digit. Positions 5-6 are read
    as digits; when both come out as digits the plate may be Mercosul
    (letter at 4) or legacy (digit at 4), and either is already in grammar,
    so position 4 is left alone. Otherwise position 4 is digit-corrected
    as legacy. Strings that are not 7 characters are returned unchanged.
    """
    if len(text) != PLATE_LENGTH:
        return text

    head = "".join(_as_letter(c) for c in text[:3]) + _as_digit(text[3])
    tail = _as_digit(text[5]) + _as_digit(text[6])

    if _is_digit(tail[0]) and _is_digit(tail[1]):
        middle = text[4]
    else:
        middle = _as_digit(text[4])

    return head + middle + tail


def plate_format(text: str) -> str | None:
    """Return "mercosul", "legacy" or None."""
    if MERCOSUL_PATTERN.match(text):
        return "mercosul"
    if LEGACY_PATTERN.match(text):
        return "legacy"
    return None


def is_valid_plate(text: str) -> bool:
    return plate_format(text) is not None


def search_plate_windows(texts: Iterable[str]) -> str | None:
    """Slide a 7-character window over each text and return the first window
    that is valid after correction.

    Each pass's text is searched on its own rather than as one concatenated
    string, so windows never span two texts: the tail of one pass glued to
    the head of the next is not a reading either pass made.
    """
    for text in texts:
        cleaned = clean_plate_text(text)
        for start in range(len(cleaned) - PLATE_LENGTH + 1):
            window = correct_plate_characters(cleaned[start : start + PLATE_LENGTH])
            if is_valid_plate(window):
                return window
    return None


def extract_plate_candidate(raw: str, all_outputs: list[str]) -> PlateCandidate | None:
    """Turn one pass's raw text into a candidate.

    Order: the whole cleaned text, then a window search over every pass's
    output, then a loose 7-character match inside this pass's text.

    Args:
        raw: This pass's engine text.
        all_outputs: Raw text of every pass, in pass order.
    """
    cleaned = clean_plate_text(raw)
    if not cleaned:
        return None

    if len(cleaned) == PLATE_LENGTH:
        corrected = correct_plate_characters(cleaned)
        if corrected != cleaned:
            logger.debug("Corrected %s -> %s", cleaned, corrected)
        if is_valid_plate(corrected):
            return PlateCandidate(corrected, True, VALID_SCORE)

    window = search_plate_windows(all_outputs)
    if window is not None:
        return PlateCandidate(window, True, VALID_SCORE)

    match = LOOSE_PATTERN.search(cleaned)
    if match is None:
        return None
    value = correct_plate_characters(match.group())
    score = PLAUSIBLE_SCORE if len(cleaned) == PLATE_LENGTH else LOOSE_SCORE
    return PlateCandidate(value, is_valid_plate(value), score)


def rank_plate_candidates(candidates: Iterable[PlateCandidate | None]) -> list[RankedCandidate]:
    """Tally candidates and rank by base score x occurrences.

    A value's base score is the best score any of its occurrences earned.
    Equal totals keep first-seen order.
    """
    counts: Counter[str] = Counter()
    best: dict[str, PlateCandidate] = {}

    for candidate in candidates:
        if candidate is None:
            continue
        counts[candidate.value] += 1
        known = best.get(candidate.value)
        if known is None or candidate.score > known.score:
            best[candidate.value] = candidate

    ranked = [
        RankedCandidate(
            value=value,
            valid=candidate.valid,
            occurrences=counts[value],
            score=candidate.score * counts[value],
        )
        for value, candidate in best.items()
    ]
    ranked.sort(key=lambda r: r.score, reverse=True)
    return ranked


def resolve_plate(outputs: list[str]) -> RankedCandidate | None:
    """Pick the winning plate across the raw outputs of all passes."""
    candidates = [extract_plate_candidate(raw, outputs) for raw in outputs]
    ranked = rank_plate_candidates(candidates)
    for entry in ranked[:3]:
        logger.debug("Plate candidate %s x%d -> %d", entry.value, entry.occurrences, entry.score)
    return ranked[0] if ranked else None
