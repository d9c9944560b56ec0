# -*- coding: utf-8 -*-
"""
Stop Matcher
============
Decides whether a passenger's free-text boarding stop can be served by a
candidate route's stop list (regular + possible stops).

Strategies are evaluated in a fixed order and the first tier with any hit
wins:

    1. exact           case-insensitive equality
    2. alias_keyword   "main stop" placeholder vs landmark keywords
                       (bus stand, main, center, corner, colony, junction)
    3. location_token  shared place token (erode, gobi, kolathur, salem, college)
    4. partial_token   both mention "main", or both mention "center"

Within the winning tier the candidate sharing a significant word with the
passenger's stop is preferred, otherwise the first one in stop order.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Tuple

from src.config import OptimizationParams
from src.models import Stop
from src.utils import normalize_stop_name, significant_words


class MatchTier(str, Enum):
    EXACT = "exact"
    ALIAS_KEYWORD = "alias_keyword"
    LOCATION_TOKEN = "location_token"
    PARTIAL_TOKEN = "partial_token"


@dataclass(frozen=True)
class MatchResult:
    stop: Stop
    tier: MatchTier

    @property
    def stop_name(self) -> str:
        return self.stop.stop_name

    @property
    def category(self) -> str:
        return self.stop.category

    @property
    def source_route_name(self) -> Optional[str]:
        return self.stop.source_route_name


class MatchStrategy:
    """Base strategy. Both names arrive already normalized."""
    tier: MatchTier

    def matches(self, passenger_stop: str, candidate: str) -> bool:
        raise NotImplementedError


class ExactMatch(MatchStrategy):
    tier = MatchTier.EXACT

    def matches(self, passenger_stop, candidate):
        return passenger_stop == candidate


class AliasKeywordMatch(MatchStrategy):
    tier = MatchTier.ALIAS_KEYWORD

    def __init__(self, placeholder: str, keywords: Sequence[str]):
        self.placeholder = normalize_stop_name(placeholder)
        self.keywords = tuple(normalize_stop_name(k) for k in keywords)

    def matches(self, passenger_stop, candidate):
        if passenger_stop != self.placeholder:
            return False
        return any(k in candidate for k in self.keywords)


class LocationTokenMatch(MatchStrategy):
    tier = MatchTier.LOCATION_TOKEN

    def __init__(self, tokens: Sequence[str]):
        self.tokens = tuple(normalize_stop_name(t) for t in tokens)

    def matches(self, passenger_stop, candidate):
        return any(t in passenger_stop and t in candidate for t in self.tokens)


class PartialTokenMatch(MatchStrategy):
    tier = MatchTier.PARTIAL_TOKEN

    def __init__(self, tokens: Sequence[str]):
        self.tokens = tuple(normalize_stop_name(t) for t in tokens)

    def matches(self, passenger_stop, candidate):
        return any(t in passenger_stop and t in candidate for t in self.tokens)


def default_strategies(params: OptimizationParams) -> List[MatchStrategy]:
    return [
        ExactMatch(),
        AliasKeywordMatch(params.main_stop_placeholder, params.landmark_keywords),
        LocationTokenMatch(params.location_tokens),
        PartialTokenMatch(params.partial_tokens),
    ]


class StopMatcher:
    def __init__(self, strategies: Optional[Sequence[MatchStrategy]] = None):
        self.strategies = list(strategies) if strategies is not None \
            else default_strategies(OptimizationParams())

    @classmethod
    def from_params(cls, params: OptimizationParams) -> "StopMatcher":
        return cls(default_strategies(params))

    def match(self, passenger_stop_name, candidate_stops: Iterable[Stop]) -> Optional[MatchResult]:
        needle = normalize_stop_name(passenger_stop_name)
        if not needle:
            return None

        named: List[Tuple[Stop, str]] = [
            (stop, normalize_stop_name(stop.stop_name)) for stop in candidate_stops
        ]
        named = [(stop, name) for stop, name in named if name]
        if not named:
            return None

        needle_words = significant_words(needle)
        for strategy in self.strategies:
            hits = [stop for stop, name in named if strategy.matches(needle, name)]
            if not hits:
                continue
            if len(hits) > 1 and needle_words:
                for stop in hits:
                    if needle_words & significant_words(stop.stop_name):
                        return MatchResult(stop=stop, tier=strategy.tier)
            return MatchResult(stop=hits[0], tier=strategy.tier)
        return None
