"""Tests for merging per-strategy candidate lists."""

import pytest

from ..errors import AggregationError
from .candidates import Candidate
from .ranking import STRATEGY_PRIORITY, aggregate, strategy_rank


def cand(target_id: str, strategy: str, score: float, reason: str = "") -> Candidate:
    return Candidate(target_id=target_id, strategy=strategy, score=score, reason=reason)


class TestStrategyRank:
    def test_follows_priority_order(self):
        ranks = [strategy_rank(s) for s in STRATEGY_PRIORITY]
        assert ranks == sorted(ranks)
        assert strategy_rank("social") < strategy_rank("popularity")

    def test_unknown_strategy_sorts_last(self):
        assert strategy_rank("mystery") == len(STRATEGY_PRIORITY)


class TestAggregate:
    def test_empty_input(self):
        assert aggregate({}) == []
        assert aggregate({"social": [], "popularity": []}) == []

    def test_one_entry_per_target_with_max_score(self):
        ranked = aggregate({
            "popularity": [cand("e1", "popularity", 0.95)],
            "social": [cand("e1", "social", 0.9, "Your connections are attending this event")],
        })

        assert len(ranked) == 1
        assert ranked[0].target_id == "e1"
        assert ranked[0].final_score == 0.95
        assert ranked[0].contributing_strategies == ["social", "popularity"]

    def test_sorted_by_score_descending(self):
        ranked = aggregate({
            "collaborative": [cand("a", "collaborative", 0.8)],
            "content_based": [cand("b", "content_based", 0.9)],
            "popularity": [cand("c", "popularity", 0.4)],
        })
        assert [r.target_id for r in ranked] == ["b", "a", "c"]

    def test_ties_broken_by_strategy_priority(self):
        ranked = aggregate({
            "popularity": [cand("p", "popularity", 0.8)],
            "location": [cand("l", "location", 0.8)],
            "collaborative": [cand("c", "collaborative", 0.8)],
        })
        assert [r.target_id for r in ranked] == ["l", "c", "p"]

    def test_ties_within_strategy_broken_by_target_id(self):
        ranked = aggregate({"social": [cand("z", "social", 0.9), cand("a", "social", 0.9)]})
        assert [r.target_id for r in ranked] == ["a", "z"]

    def test_equal_scores_keep_higher_priority_reason(self):
        ranked = aggregate({
            "content_based": [cand("e1", "content_based", 0.9, "Based on your interest in music")],
            "social": [cand("e1", "social", 0.9, "Your connections are attending this event")],
        })
        assert ranked[0].reason_text == "Your connections are attending this event"

    def test_result_is_independent_of_input_order(self):
        lists = {
            "popularity": [cand("x", "popularity", 0.7), cand("y", "popularity", 0.5)],
            "category": [cand("y", "category", 0.85)],
            "social": [cand("z", "social", 0.9)],
        }
        reordered = dict(reversed(list(lists.items())))
        assert aggregate(lists) == aggregate(reordered)

    def test_out_of_range_score_raises(self):
        bad = Candidate.model_construct(target_id="e1", strategy="social", score=1.5, reason="", item=None)
        with pytest.raises(AggregationError):
            aggregate({"social": [bad]})

    def test_best_candidate_names_the_strategy(self):
        ranked = aggregate({
            "location": [cand("e1", "location", 0.8, "Near your preferred location: Lisbon")],
            "popularity": [cand("e1", "popularity", 1.0, "Popular event with high engagement")],
        })

        assert ranked[0].strategy == "popularity"
        assert ranked[0].reason_text == "Popular event with high engagement"
        assert ranked[0].contributing_strategies == ["location", "popularity"]

    def test_ties_use_the_scoring_strategy_not_the_highest_contributor(self):
        ranked = aggregate({
            "location": [cand("a", "location", 0.8)],
            "popularity": [cand("a", "popularity", 1.0)],
            "collaborative": [cand("b", "collaborative", 1.0)],
        })
        assert [r.target_id for r in ranked] == ["b", "a"]
