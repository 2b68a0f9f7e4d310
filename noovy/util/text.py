import re
import unicodedata

from rapidfuzz import utils


def normalize_text(text: str | None) -> str:
    """Lowercase, strip punctuation and collapse whitespace."""
    if not text:
        return ""
    normalized = str(utils.default_process(text))
    normalized = re.sub(r"\s+", " ", normalized).strip()
    return normalized


def fold_accents(text: str | None) -> str:
    """Lowercase and drop combining accents ("Fantôme" -> "fantome")."""
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFD", text.lower())
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def metadata_cache_key(author: str | None, title: str | None) -> str:
    """Stable cache key for the metadata of a book."""
    return f"{normalize_text(author)}|{normalize_text(title)}"
