"""Tests for DuplicateDetector."""

import pytest

from src.incidents.domain import DuplicateDetector, Incident

from conftest import MONDAY_10AM, ORG, REPORTER


def _make_incident(id="inc-1", **overrides) -> Incident:
    fields = {
        "id": id,
        "organization_id": ORG,
        "ticket_number": f"INC-{id}",
        "title": "VPN connection drops every hour",
        "description": "Users on the Berlin office VPN get disconnected",
        "reporter_id": REPORTER,
        "created_at": MONDAY_10AM,
        "updated_at": MONDAY_10AM,
    }
    fields.update(overrides)
    return Incident(**fields)


class TestTokenize:

    def test_lowercases_and_splits_on_punctuation(self):
        assert DuplicateDetector.tokenize("VPN-Gateway/DOWN!") == {"vpn", "gateway", "down"}

    def test_drops_short_tokens(self):
        assert DuplicateDetector.tokenize("db is on fire") == {"fire"}

    def test_distinct_tokens(self):
        assert DuplicateDetector.tokenize("error error ERROR") == {"error"}

    def test_empty_text(self):
        assert DuplicateDetector.tokenize("") == set()
        assert DuplicateDetector.tokenize(None) == set()


class TestJaccard:

    def test_identical_texts(self):
        assert DuplicateDetector.jaccard("printer jam", "Printer JAM") == 1.0

    def test_partial_overlap(self):
        # {vpn, down, for, everyone} vs {vpn, down}
        assert DuplicateDetector.jaccard("VPN is down for everyone", "vpn down") == 0.5

    def test_disjoint(self):
        assert DuplicateDetector.jaccard("printer jam", "vpn outage") == 0.0

    def test_empty_side_scores_zero(self):
        assert DuplicateDetector.jaccard("", "vpn outage") == 0.0
        assert DuplicateDetector.jaccard("a b", "a b") == 0.0


class TestSimilarity:

    def test_identical_incidents_score_one(self):
        source = _make_incident(category_id="network", configuration_item_ids=["ci-vpn"])
        candidate = _make_incident(id="inc-2", category_id="network", configuration_item_ids=["ci-vpn"])

        assert DuplicateDetector.similarity(source, candidate) == 1.0

    def test_missing_category_gets_no_bonus(self):
        source = _make_incident()
        candidate = _make_incident(id="inc-2")

        # title 0.5 + description 0.2 + channel 0.1 + priority 0.05
        assert DuplicateDetector.similarity(source, candidate) == 0.85

    def test_only_metadata_matches(self):
        source = _make_incident(title="printer jam", description="")
        candidate = _make_incident(id="inc-2", title="vpn outage", description="")

        # channel 0.1 + priority 0.05
        assert DuplicateDetector.similarity(source, candidate) == 0.15

    def test_result_is_rounded(self):
        source = _make_incident(title="alpha beta gamma", description="")
        candidate = _make_incident(
            id="inc-2", title="alpha delta epsilon", description="", channel="email", priority="low"
        )

        # 1/5 title overlap
        assert DuplicateDetector.similarity(source, candidate) == 0.1


class TestRank:

    def test_excludes_source_and_low_scores(self):
        source = _make_incident()
        pool = [
            source,
            _make_incident(id="inc-2"),
            _make_incident(id="inc-3", title="printer jam", description="toner", channel="email", priority="low"),
        ]

        ranked = DuplicateDetector.rank(source, pool, limit=5)

        assert [c.incident.id for c in ranked] == ["inc-2"]

    def test_orders_by_score_and_applies_limit(self):
        source = _make_incident()
        pool = [
            _make_incident(id="inc-2", description="something unrelated"),
            _make_incident(id="inc-3"),
            _make_incident(id="inc-4", channel="email"),
        ]

        ranked = DuplicateDetector.rank(source, pool, limit=2)

        assert [c.incident.id for c in ranked] == ["inc-3", "inc-4"]
        assert ranked[0].similarity_score >= ranked[1].similarity_score

    @pytest.mark.parametrize("min_score,expected", [(0.0, 1), (0.2, 0)])
    def test_min_score_threshold(self, min_score, expected):
        source = _make_incident(title="printer jam", description="")
        pool = [_make_incident(id="inc-2", title="vpn outage", description="")]

        assert len(DuplicateDetector.rank(source, pool, limit=5, min_score=min_score)) == expected

    def test_candidate_to_dict(self):
        source = _make_incident()
        ranked = DuplicateDetector.rank(source, [_make_incident(id="inc-2")], limit=1)

        payload = ranked[0].to_dict()

        assert payload["similarity_score"] == 0.85
        assert payload["id"] == "inc-2"
        assert payload["ticket_number"] == "INC-inc-2"
