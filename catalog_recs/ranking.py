"""
Catalog Recommendation Service — Deduplication & Ranking helpers
"""
from __future__ import annotations
from typing import Callable, Iterable, TypeVar
from uuid import UUID

from catalog_recs.generators import Candidate

T = TypeVar("T")


def dedupe(candidates: Iterable[Candidate], source_id: UUID) -> list[Candidate]:
    """Drop the source product and keep the first occurrence of every id."""
    seen = {source_id}
    unique: list[Candidate] = []
    for candidate in candidates:
        if candidate.product_id in seen:
            continue
        seen.add(candidate.product_id)
        unique.append(candidate)
    return unique


def truncate(items: list[T], limit: int) -> list[T]:
    if limit <= 0:
        return []
    return items[:limit]


def rank(items: Iterable[T], key: Callable[[T], object], limit: int,
         reverse: bool = False) -> list[T]:
    """Stable sort then truncate; ties keep their input order."""
    return truncate(sorted(items, key=key, reverse=reverse), limit)
