# -*- coding: utf-8 -*-
"""StopMatcher 규칙 우선순위 테스트"""
import pytest

from src.models import POSSIBLE, REGULAR, Stop
from src.stop_matcher import (
    ExactMatch, MatchTier, StopMatcher, default_strategies,
)
from src.config import OptimizationParams


def _stop(name, category=REGULAR, source=None, seq=1):
    return Stop(
        id=seq, route_id="target", stop_name=name, sequence_order=seq,
        category=category, source_route_id=source and "src-id", source_route_name=source,
    )


@pytest.fixture
def matcher():
    return StopMatcher.from_params(OptimizationParams())


class TestStopMatcher:

    def test_exact_match_is_case_insensitive(self, matcher):
        result = matcher.match("ERODE bus stand", [_stop("Erode Bus Stand")])
        assert result is not None
        assert result.tier == MatchTier.EXACT
        assert result.stop_name == "Erode Bus Stand"

    def test_exact_match_beats_heuristic_on_other_candidate(self, matcher):
        """앞쪽 후보가 휴리스틱으로 맞아도 정확히 일치하는 후보가 선택된다."""
        stops = [_stop("Main Road Junction", seq=1), _stop("Main Stop", seq=2)]
        result = matcher.match("main stop", stops)
        assert result.tier == MatchTier.EXACT
        assert result.stop_name == "Main Stop"

    @pytest.mark.parametrize("candidate", [
        "Perundurai Bus Stand", "Market Center", "Nasiyanur Corner",
        "Teachers Colony", "Kalingarayan Junction",
    ])
    def test_main_stop_placeholder_matches_landmarks(self, matcher, candidate):
        result = matcher.match("Main Stop", [_stop(candidate)])
        assert result is not None
        assert result.tier == MatchTier.ALIAS_KEYWORD

    def test_main_stop_placeholder_ignores_plain_stops(self, matcher):
        assert matcher.match("Main Stop", [_stop("Chithode"), _stop("Bhavani")]) is None

    def test_location_token_match(self, matcher):
        result = matcher.match("Gobi Old Bus Stop", [_stop("Perundurai"), _stop("Gobi Market")])
        assert result.tier == MatchTier.LOCATION_TOKEN
        assert result.stop_name == "Gobi Market"

    def test_location_token_requires_same_token(self, matcher):
        assert matcher.match("Salem Steel Plant", [_stop("Erode Railway Station")]) is None

    def test_partial_token_match(self, matcher):
        result = matcher.match("Town Center", [_stop("Chithode"), _stop("Shopping Center")])
        assert result.tier == MatchTier.PARTIAL_TOKEN
        assert result.stop_name == "Shopping Center"

    def test_no_match_returns_none(self, matcher):
        assert matcher.match("Unknown Corner", [_stop("Erode Bus Stand"), _stop("Main Junction")]) is None

    def test_blank_passenger_stop_never_matches(self, matcher):
        assert matcher.match(None, [_stop("Main Junction")]) is None
        assert matcher.match("   ", [_stop("Main Junction")]) is None

    def test_within_tier_prefers_shared_word(self, matcher):
        """같은 규칙 안에서는 승객 정류장과 단어가 겹치는 후보를 우선한다."""
        stops = [
            _stop("Erode Bus Stand", seq=1),
            _stop("Main Junction", category=POSSIBLE, source="Route C", seq=2),
        ]
        result = matcher.match("Main Stop", stops)
        assert result.tier == MatchTier.ALIAS_KEYWORD
        assert result.stop_name == "Main Junction"
        assert result.category == POSSIBLE
        assert result.source_route_name == "Route C"

    def test_first_candidate_wins_without_shared_word(self, matcher):
        stops = [_stop("Teachers Colony", seq=1), _stop("Erode Bus Stand", seq=2)]
        assert matcher.match("Main Stop", stops).stop_name == "Teachers Colony"

    def test_custom_strategy_list(self):
        matcher = StopMatcher([ExactMatch()])
        assert matcher.match("Main Stop", [_stop("Main Junction")]) is None
        assert matcher.match("main junction", [_stop("Main Junction")]).tier == MatchTier.EXACT

    def test_keywords_come_from_params(self):
        params = OptimizationParams(location_tokens=("bhavani",))
        matcher = StopMatcher(default_strategies(params))
        assert matcher.match("Bhavani Kooduthurai", [_stop("Bhavani Bus Depot")]).tier == MatchTier.LOCATION_TOKEN
        assert matcher.match("Erode Fort", [_stop("Erode Market")]) is None
