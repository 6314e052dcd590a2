"""Test search filtering and ranking."""

from prompthub.models import PromptMetadata, SearchQuery
from prompthub.search import SearchIndex, matches, relevance_score, search


def meta(pid, name, description="", tags=(), author="alice", runs=0, rating=None):
    return PromptMetadata(
        id=pid, name=name, description=description, tags=list(tags),
        author=author, execution_count=runs, average_rating=rating,
    )


PROMPTS = [
    meta("p1", "Summarize Text", "Short summaries", tags=["text", "summarization"]),
    meta("p2", "Translate", "Translate text between languages", tags=["translation"], author="bob"),
    meta("p3", "Code Review", "Review a diff", tags=["code"]),
]


def test_text_matches_name_or_description():
    q = SearchQuery(text="text")
    assert [p.id for p in PROMPTS if matches(p, q)] == ["p1", "p2"]


def test_text_is_case_insensitive():
    assert matches(PROMPTS[2], SearchQuery(text="CODE"))


def test_empty_text_matches_everything():
    assert len(search(PROMPTS, SearchQuery())) == 3


def test_tag_filter_uses_substrings():
    results = search(PROMPTS, SearchQuery(tags=["summ"]))
    assert [p.id for p in results] == ["p1"]


def test_author_filter():
    assert [p.id for p in search(PROMPTS, SearchQuery(author="bob"))] == ["p2"]


def test_relevance_score():
    p = meta("p", "Summarize", "summarize things", tags=["text", "textual"], runs=0, rating=4)
    q = SearchQuery(text="summarize", tags=["text"])
    assert relevance_score(p, q) == 10 + 5 + 3 * 2 + 4


def test_name_match_outranks_description_match():
    prompts = [meta("a", "Other", "about review"), meta("b", "Review", "other")]
    assert [p.id for p in search(prompts, SearchQuery(text="review"))] == ["b", "a"]


def test_ties_keep_input_order():
    prompts = [meta("a", "Doc one"), meta("b", "Doc two"), meta("c", "Doc three")]
    assert [p.id for p in search(prompts, SearchQuery(text="doc"))] == ["a", "b", "c"]


def test_popularity_breaks_ties():
    prompts = [meta("a", "Doc"), meta("b", "Doc", runs=10)]
    assert [p.id for p in search(prompts, SearchQuery(text="doc"))] == ["b", "a"]


def test_limit_and_offset():
    prompts = [meta(f"p{i}", f"Doc {i}") for i in range(15)]
    assert len(search(prompts, SearchQuery(text="doc"))) == 10
    page = search(prompts, SearchQuery(text="doc", limit=5, offset=5))
    assert [p.id for p in page] == ["p5", "p6", "p7", "p8", "p9"]


def test_index_tags():
    index = SearchIndex(PROMPTS)
    assert len(index) == 3
    assert index.tags() == ["code", "summarization", "text", "translation"]
    assert [p.id for p in index.by_tag("TEXT")] == ["p1"]
    assert [p.id for p in index.search(SearchQuery(text="review"))] == ["p3"]
