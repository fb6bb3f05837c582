"""Slug generation and per-city collision handling for establishment imports."""

import re
import unicodedata
from typing import Mapping, Optional

_INVALID_CHARS = re.compile(r"[^a-z0-9\s-]")
_WHITESPACE = re.compile(r"\s+")
_HYPHENS = re.compile(r"-+")


def slugify(name: str) -> str:
    """Generate a URL-safe ASCII slug from a display name."""
    if not name:
        return ""
    decomposed = unicodedata.normalize("NFKD", name.lower())
    ascii_only = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    slug = _INVALID_CHARS.sub("", ascii_only)
    slug = _WHITESPACE.sub("-", slug.strip())
    slug = _HYPHENS.sub("-", slug)
    return slug.strip("-")


def establishment_key(name: str, address: Optional[str] = None) -> str:
    """Identity of an establishment within a city: slugified name and address."""
    return f"{slugify(name)}|{slugify(address or '')}"


class SlugAllocator:
    """
    Hands out slugs that are unique within one city for one import run.

    `existing` maps slugs already stored for the city to their
    establishment_key. A record whose key matches a stored row gets that
    row's slug back, so re-imports update in place. Stored slugs are never
    handed to a different establishment. New records keep the bare slug if
    it is free; on collision the slugified neighborhood is appended, else a
    counter seeded by the number of prior collisions. Identical input
    always yields identical slugs; the store is never queried.
    """

    def __init__(self, existing: Optional[Mapping[str, str]] = None) -> None:
        self._used: set[str] = set()
        self._reserved: set[str] = set(existing or {})
        self._by_key: dict[str, list[str]] = {}
        for slug, key in sorted((existing or {}).items(), key=lambda kv: (len(kv[0]), kv[0])):
            self._by_key.setdefault(key, []).append(slug)
        self.collisions = 0

    def __contains__(self, slug: str) -> bool:
        return slug in self._used

    def __len__(self) -> int:
        return len(self._used)

    def _free(self, slug: str) -> bool:
        return bool(slug) and slug not in self._used and slug not in self._reserved

    def _take(self, slug: str) -> str:
        self._used.add(slug)
        return slug

    def allocate(self, name: str, neighborhood: Optional[str] = None, address: Optional[str] = None) -> str:
        stored = self._by_key.get(establishment_key(name, address))
        while stored:
            slug = stored.pop(0)
            if slug not in self._used:
                return self._take(slug)

        base = slugify(name)
        if self._free(base):
            return self._take(base)

        suffix = slugify(neighborhood) if neighborhood else ""
        if suffix:
            candidate = f"{base}-{suffix}" if base else suffix
            if self._free(candidate):
                return self._take(candidate)
            base = candidate

        self.collisions += 1
        counter = self.collisions
        while True:
            candidate = f"{base}-{counter}" if base else str(counter)
            if self._free(candidate):
                return self._take(candidate)
            counter += 1
