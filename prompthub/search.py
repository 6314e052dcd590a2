"""Search and discovery over prompt metadata."""

from __future__ import annotations

import math

from prompthub.models import PromptMetadata, SearchQuery


def matches(prompt: PromptMetadata, query: SearchQuery) -> bool:
    text = f"{prompt.name} {prompt.description}".lower()
    if query.text.lower() not in text:
        return False
    if query.tags and _tag_matches(prompt, query) == 0:
        return False
    if query.author and prompt.author != query.author:
        return False
    return True


def relevance_score(prompt: PromptMetadata, query: SearchQuery) -> float:
    q = query.text.lower()
    score = 0.0
    if q in prompt.name.lower():
        score += 10
    if q in prompt.description.lower():
        score += 5
    score += 3 * _tag_matches(prompt, query)
    score += math.log(prompt.execution_count + 1)
    if prompt.average_rating:
        score += prompt.average_rating
    return score


def search(prompts: list[PromptMetadata], query: SearchQuery) -> list[PromptMetadata]:
    """Filter, rank by descending score (ties keep input order), then page."""
    candidates = [p for p in prompts if matches(p, query)]
    ranked = sorted(candidates, key=lambda p: relevance_score(p, query), reverse=True)
    offset = max(query.offset, 0)
    limit = query.limit if query.limit and query.limit > 0 else 10
    return ranked[offset:offset + limit]


def _tag_matches(prompt: PromptMetadata, query: SearchQuery) -> int:
    """Number of (query tag, prompt tag) pairs where the query tag is a substring."""
    if not query.tags:
        return 0
    return sum(
        1
        for qt in query.tags
        for pt in prompt.tags
        if qt.lower() in pt.lower()
    )


class SearchIndex:
    """Snapshot of vault metadata with a tag index."""

    def __init__(self, prompts: list[PromptMetadata] | None = None):
        self._prompts: list[PromptMetadata] = []
        self._by_tag: dict[str, list[PromptMetadata]] = {}
        self.rebuild(prompts or [])

    def rebuild(self, prompts: list[PromptMetadata]):
        self._prompts = list(prompts)
        self._by_tag = {}
        for p in self._prompts:
            for tag in p.tags:
                self._by_tag.setdefault(tag.lower(), []).append(p)

    def __len__(self) -> int:
        return len(self._prompts)

    def tags(self) -> list[str]:
        return sorted(self._by_tag)

    def by_tag(self, tag: str) -> list[PromptMetadata]:
        return list(self._by_tag.get(tag.lower(), []))

    def search(self, query: SearchQuery) -> list[PromptMetadata]:
        return search(self._prompts, query)
