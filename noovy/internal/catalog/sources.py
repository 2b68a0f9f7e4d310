from typing import Protocol

from noovy.internal.models import Item


class SourceLister(Protocol):
    """Lists every book of a catalog source, pagination and duplicates handled."""

    source_id: str

    async def list_items(self) -> list[Item]: ...


class AccessResolver(Protocol):
    """Produces a download link for a book, or None when there is none."""

    async def resolve_access_url(self, item: Item) -> str | None: ...


def dedupe_items(items: list[Item]) -> list[Item]:
    """Drop repeated ids, keeping the first occurrence and the source order."""
    seen: set[str] = set()
    unique: list[Item] = []
    for item in items:
        if item.id in seen:
            continue
        seen.add(item.id)
        unique.append(item)
    return unique
