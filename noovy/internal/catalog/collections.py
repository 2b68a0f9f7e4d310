"""
Editorial collections, matched by keywords and author names.
"""
from typing import Iterable, TypeVar

from pydantic import BaseModel

from noovy.internal.models import Item
from noovy.util.text import fold_accents

ItemT = TypeVar("ItemT", bound=Item)


class CollectionRule(BaseModel):
    label: str
    keywords: list[str]
    authors: list[str]


COLLECTION_RULES: dict[str, CollectionRule] = {
    "19th": CollectionRule(
        label="XIXe Siecle",
        keywords=["xixe", "19e", "1800", "realisme", "naturalisme", "victorien", "victorian"],
        authors=["balzac", "zola", "flaubert", "hugo", "dickens", "dumas", "stendhal", "maupassant"],
    ),
    "romanticism": CollectionRule(
        label="Romantisme",
        keywords=["romantisme", "romantic", "romantique", "emotion", "passion", "lyrique"],
        authors=["lamartine", "musset", "chateaubriand", "goethe", "byron"],
    ),
    "dark-academia": CollectionRule(
        label="Savoir & Mystere",
        keywords=["academia", "ecole", "universite", "college", "philosophie", "mystere", "secret", "knowledge"],
        authors=["dostoevsky", "eco", "conan doyle"],
    ),
    "gothic": CollectionRule(
        label="Horreur Gothique",
        keywords=["gothique", "gothic", "horreur", "horror", "fantome", "vampire", "noir", "macabre"],
        authors=["poe", "shelley", "stoker", "lovecraft", "le fanu", "hoffmann"],
    ),
}


def matches_collection(item: Item, collection_id: str) -> bool:
    rule = COLLECTION_RULES.get(collection_id)
    if rule is None:
        return True

    haystack = fold_accents(
        " ".join(
            part or ""
            for part in (
                item.title,
                item.author,
                item.raw_title,
                item.description,
                item.category,
                item.language,
            )
        )
    )
    return any(fold_accents(kw) in haystack for kw in rule.keywords) or any(
        fold_accents(name) in haystack for name in rule.authors
    )


def filter_by_collection(items: Iterable[ItemT], collection_id: str | None) -> list[ItemT]:
    """Books of a collection. Unknown or empty collection ids filter nothing."""
    items = list(items)
    if not collection_id or collection_id not in COLLECTION_RULES:
        return items
    return [item for item in items if matches_collection(item, collection_id)]
