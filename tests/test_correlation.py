"""
Tests for the relationship classifier: Pearson over price histories,
same-group / cross-group pairing and event buckets.
"""

import pytest

from conftest import FakeCatalog, make_settings
from polyscope.analytics.correlation import (
    InsightAnalyzer, analyze, dedupe_items, find_pairs, group_items, pearson_correlation,
)
from polyscope.analytics.enrichment import Enricher
from polyscope.schemas import EnrichedItem, PricePoint


def item(item_id, series=(), group_id=None, group_title=None, token_id=None):
    return EnrichedItem(
        id=item_id,
        title=f"Market {item_id}",
        chart_data=[PricePoint(timestamp=str(i), price=p) for i, p in enumerate(series)],
        group_id=group_id,
        group_title=group_title,
        token_id=token_id,
    )


class TestPearson:
    def test_self_correlation_is_one(self):
        series = [0.1, 0.4, 0.35, 0.8, 0.6]
        assert pearson_correlation(series, series) == pytest.approx(1.0)

    def test_negation_is_minus_one(self):
        series = [0.1, 0.4, 0.35, 0.8, 0.6]
        assert pearson_correlation(series, [-x for x in series]) == pytest.approx(-1.0)

    def test_constant_series_is_zero(self):
        assert pearson_correlation([0.5, 0.5, 0.5], [0.1, 0.2, 0.3]) == 0.0

    def test_fewer_than_two_samples_is_zero(self):
        assert pearson_correlation([0.5], [0.5]) == 0.0
        assert pearson_correlation([], [0.1, 0.2]) == 0.0

    def test_aligns_on_most_recent_window(self):
        # Only the last three samples of the longer series are compared
        assert pearson_correlation([9, 9, 1, 2, 3], [1, 2, 3]) == pytest.approx(1.0)

    def test_result_is_clamped(self):
        a = [0.1 + i * 1e-9 for i in range(50)]
        r = pearson_correlation(a, a)
        assert -1.0 <= r <= 1.0

    def test_non_finite_window_is_zero(self):
        assert pearson_correlation([float("nan"), 0.2, 0.3], [0.9, 0.1, 0.5]) == 0.0
        assert pearson_correlation([0.1, float("inf"), 0.3], [0.9, 0.1, 0.5]) == 0.0


class TestFindPairs:
    def test_same_group_pair_always_recorded(self):
        a = item("a", group_id="e1", group_title="Fed decision")
        b = item("b", group_id="e1", group_title="Fed decision")

        pairs = find_pairs([a, b])
        assert len(pairs) == 1
        assert pairs[0].relation == "same-group"
        assert pairs[0].coefficient == 0.0

    def test_strong_cross_group_pair_recorded(self):
        c = item("c", [1, 2, 3, 4], group_id="e1")
        d = item("d", [4, 3, 2, 1], group_id="e2")

        pairs = find_pairs([c, d])
        assert len(pairs) == 1
        assert pairs[0].relation == "cross-group"
        assert pairs[0].coefficient == pytest.approx(-1.0)

    def test_weak_cross_group_pair_dropped(self):
        c = item("c", [1, 2, 3, 4], group_id="e1")
        e = item("e", [2, 1, 2, 1], group_id="e2")
        # r = -1/sqrt(5), below the 0.7 threshold
        assert find_pairs([c, e]) == []

    def test_nan_prices_do_not_fake_a_perfect_pair(self):
        history = [PricePoint(timestamp=str(i), price=p) for i, p in enumerate(["NaN", "0.2", "0.3"])]
        a = EnrichedItem(id="a", title="A", chart_data=history, group_id="e1")
        b = item("b", [0.9, 0.1, 0.5], group_id="e2")

        assert a.price_series() == [0.0, 0.2, 0.3]
        assert find_pairs([a, b]) == []

    def test_threshold_is_inclusive(self):
        c = item("c", [1, 2, 3, 4])
        e = item("e", [2, 1, 2, 1])
        assert len(find_pairs([c, e], threshold=0.4)) == 1


class TestAnalyze:
    def test_core_is_first_k_after_dedupe(self):
        items = [item(str(i)) for i in range(8)]
        report = analyze(items + items[:3], core_count=5)
        assert [m.id for m in report.core] == ["0", "1", "2", "3", "4"]

    def test_dedupe_is_idempotent(self):
        items = [item("a"), item("b"), item("a")]
        assert dedupe_items(dedupe_items(items)) == dedupe_items(items)

    def test_pairs_only_among_candidates(self):
        items = [item(str(i), group_id="e1", group_title="Same event") for i in range(6)]
        report = analyze(items, candidate_count=3)
        # C(3, 2) same-group pairs
        assert len(report.pairs) == 3

    def test_groups_need_two_members(self):
        items = [
            item("a", group_id="e1", group_title="Election"),
            item("b", group_id="e1", group_title="Election"),
            item("c", group_id="e2", group_title="Lonely"),
            item("d"),
        ]
        groups = group_items(items)
        assert [g.group_id for g in groups] == ["e1"]
        assert [m.id for m in groups[0].items] == ["a", "b"]

    def test_mixed_report(self):
        items = [
            item("a", [0.2, 0.3, 0.4], group_id="e1", group_title="Fed"),
            item("b", [0.5, 0.5, 0.5], group_id="e1", group_title="Fed"),
            item("c", [1, 2, 3, 4], group_id="e2", group_title="CPI"),
            item("d", [4, 3, 2, 1], group_id="e3", group_title="Jobs"),
        ]
        report = analyze(items)
        relations = {(p.item_a.id, p.item_b.id): p.relation for p in report.pairs}
        assert relations[("a", "b")] == "same-group"
        assert relations[("c", "d")] == "cross-group"
        assert [g.group_id for g in report.groups] == ["e1"]


class TestInsightAnalyzer:
    @pytest.mark.asyncio
    async def test_fetches_histories_then_analyzes(self):
        catalog = FakeCatalog()
        catalog.histories = {"t-c": [1, 2, 3, 4], "t-d": [4, 3, 2, 1]}
        analyzer = InsightAnalyzer(Enricher(catalog), make_settings())

        report, items = await analyzer.run([
            item("c", group_id="e2", token_id="t-c"),
            item("d", group_id="e3", token_id="t-d"),
            item("x"),
        ])

        assert [len(m.chart_data) for m in items] == [4, 4, 0]
        assert len(report.pairs) == 1
        assert report.pairs[0].coefficient == pytest.approx(-1.0)

    @pytest.mark.asyncio
    async def test_history_fetch_limited_to_candidates(self):
        catalog = FakeCatalog()
        analyzer = InsightAnalyzer(Enricher(catalog), make_settings(insight_candidate_count=2))

        await analyzer.run([item(str(i), token_id=f"t{i}") for i in range(5)])

        fetched = [key for (method, key) in catalog.calls if method == "get_price_history"]
        assert sorted(fetched) == ["t0", "t1"]
