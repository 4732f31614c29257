"""
Unit tests for result merging and entity boosting.
"""

from flowrag.retrieval.fusion import boost_entity_matches, get_fusion_stats, merge_results
from flowrag.types import SearchResult


def result(rid, score, content="", source="vector"):
    return SearchResult(id=rid, content=content, score=score, source=source)


class TestMergeResults:
    """Tests for merge_results()"""

    def test_first_occurrence_wins(self):
        """On duplicate ids the earlier list's result is kept"""
        merged = merge_results(
            [result("a", 0.4, source="graph")],
            [result("a", 0.9), result("b", 0.5)],
        )
        assert [r.id for r in merged] == ["b", "a"]
        assert merged[1].source == "graph"
        assert merged[1].score == 0.4

    def test_limit(self):
        """limit truncates after sorting"""
        merged = merge_results([result("a", 0.1), result("b", 0.9), result("c", 0.5)], limit=2)
        assert [r.id for r in merged] == ["b", "c"]

    def test_no_duplicate_ids(self):
        """Each id appears at most once"""
        merged = merge_results([result("a", 0.1)], [result("a", 0.2)], [result("a", 0.3)])
        assert len(merged) == 1


class TestBoostEntityMatches:
    """Tests for boost_entity_matches()"""

    def test_match_boosted_other_penalized(self):
        """Mentions are multiplied by boost, the rest by penalty"""
        results = [result("a", 0.6, "plain text"), result("b", 0.5, "uses ServiceA")]
        ranked = boost_entity_matches(results, ["servicea"])

        assert [r.id for r in ranked] == ["b", "a"]
        assert ranked[0].score == 0.75
        assert ranked[1].score == 0.3

    def test_count_preserved(self):
        """Boosting never drops results"""
        results = [result(str(i), 0.1 * i, "x") for i in range(5)]
        assert len(boost_entity_matches(results, ["nothing"])) == 5

    def test_no_entities_keeps_order(self):
        """Without entity names the input is returned unchanged"""
        results = [result("a", 0.1), result("b", 0.9)]
        assert boost_entity_matches(results, []) == results

    def test_negative_scores(self):
        """A penalized negative score moves further down"""
        ranked = boost_entity_matches([result("a", -0.2, "x")], ["y"], penalty=0.5)
        assert ranked[0].score == -0.4


class TestFusionStats:
    """Tests for get_fusion_stats()"""

    def test_overlap_counts(self):
        """Overlap between the two halves is counted"""
        stats = get_fusion_stats([result("a", 1), result("b", 1)], [result("b", 1), result("c", 1)])
        assert stats == {"local_only": 1, "global_only": 1, "both_modes": 1, "total_results": 3}
