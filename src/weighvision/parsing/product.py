"""Cargo detection by vocabulary lookup."""

import unicodedata

DEFAULT_VOCABULARY: tuple[str, ...] = (
    "soja",
    "milho",
    "trigo",
    "sorgo",
    "café",
    "feijão",
    "arroz",
    "algodão",
    "cana",
)


def fold_accents(text: str) -> str:
    """Strip combining marks: ``feijão`` -> ``feijao``."""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def detect_product(text: str, vocabulary: tuple[str, ...] = DEFAULT_VOCABULARY) -> str | None:
    """Return the first vocabulary term found in ``text``, capitalised.

    Matching is case-insensitive substring search; a term also matches when
    the engine dropped its accents.
    """
    lowered = (text or "").lower()
    folded = fold_accents(lowered)

    for term in vocabulary:
        term = term.lower()
        if term in lowered or fold_accents(term) in folded:
            return term[:1].upper() + term[1:]
    return None
