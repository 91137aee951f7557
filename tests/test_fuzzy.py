from __future__ import annotations

from notecontext.models import SearchItem
from notecontext.providers import RapidFuzzMatcher


def _item(title: str, article: str) -> SearchItem:
    return SearchItem(id=title, title=title, article=article)


def test_exact_substring_scores_full_and_reports_inclusive_span() -> None:
    article = "Patient shows anxiety symptoms."
    results = RapidFuzzMatcher().search(
        [_item("note1.md", article)], "anxiety", keys=["title", "article"], threshold=0.3
    )

    assert len(results) == 1
    assert results[0].score == 1.0
    match = next(m for m in results[0].matches if m.key == "article")
    start, end = match.indices[0]
    assert article[start : end + 1] == "anxiety"


def test_matching_is_case_insensitive() -> None:
    results = RapidFuzzMatcher().search(
        [_item("a.md", "ANXIETY is common")], "anxiety", keys=["article"], threshold=0.0
    )
    assert results and results[0].score == 1.0


def test_span_points_into_original_text_after_case_folding() -> None:
    article = "İİİİ Istanbul notes mention ANXIETY twice"
    results = RapidFuzzMatcher().search(
        [_item("trip.md", article)], "anxiety", keys=["article"], threshold=0.0
    )

    assert results and results[0].score == 1.0
    start, end = results[0].matches[0].indices[0]
    assert article[start : end + 1] == "ANXIETY"


def test_unrelated_text_is_excluded_at_tight_threshold() -> None:
    results = RapidFuzzMatcher().search(
        [_item("note2.md", "Unrelated gardening tips.")], "anxiety", keys=["article"], threshold=0.3
    )
    assert results == []


def test_threshold_one_accepts_weak_matches() -> None:
    results = RapidFuzzMatcher().search(
        [_item("note2.md", "Unrelated gardening tips.")], "anxiety", keys=["article"], threshold=1.0
    )
    assert len(results) == 1
    assert 0.0 < results[0].score < 1.0


def test_results_sorted_best_first_with_refindex() -> None:
    items = [_item("a.md", "anxeity typo here"), _item("b.md", "plain anxiety here")]

    results = RapidFuzzMatcher().search(items, "anxiety", keys=["article"], threshold=0.5)

    assert [result.item.id for result in results][0] == "b.md"
    assert results[0].refindex == 1


def test_blank_query_and_empty_fields_return_nothing() -> None:
    matcher = RapidFuzzMatcher()
    assert matcher.search([_item("a.md", "text")], "   ", keys=["article"], threshold=1.0) == []
    assert matcher.search([_item("a.md", "")], "text", keys=["article", "missing"], threshold=1.0) == []


def test_score_and_matches_can_be_omitted() -> None:
    results = RapidFuzzMatcher().search(
        [_item("a.md", "anxiety")],
        "anxiety",
        keys=["article"],
        threshold=0.3,
        include_score=False,
        include_matches=False,
    )
    assert results[0].matches == []
    assert results[0].score == 1.0
