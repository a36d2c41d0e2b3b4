"""
Duplicate Detection
===================

Token-overlap similarity between incidents.

The score is a weighted sum of title and description Jaccard similarity
plus small bonuses for shared category, channel, priority and
configuration items.
"""

import re
from typing import Iterable, List, Set

from src.incidents.domain.entities import DuplicateCandidate, Incident


_NON_ALNUM = re.compile(r"[^a-z0-9\s]")


class DuplicateDetector:
    """
    Stateless similarity scoring for potential duplicate incidents.
    """

    MIN_TOKEN_LENGTH = 3
    DEFAULT_MIN_SCORE = 0.25

    # Score weights, summing to 1.0
    TITLE_WEIGHT = 0.5
    DESCRIPTION_WEIGHT = 0.2
    CATEGORY_WEIGHT = 0.1
    CHANNEL_WEIGHT = 0.1
    PRIORITY_WEIGHT = 0.05
    CONFIGURATION_ITEM_WEIGHT = 0.05

    @staticmethod
    def tokenize(text: str) -> Set[str]:
        """
        Lowercase, replace non-alphanumerics with spaces and keep the
        distinct tokens of at least three characters.
        """
        cleaned = _NON_ALNUM.sub(" ", (text or "").lower())
        return {
            token for token in cleaned.split()
            if len(token) >= DuplicateDetector.MIN_TOKEN_LENGTH
        }

    @staticmethod
    def jaccard(left: str, right: str) -> float:
        """Jaccard similarity of two texts' token sets; 0 if either is empty."""
        left_tokens = DuplicateDetector.tokenize(left)
        right_tokens = DuplicateDetector.tokenize(right)

        if not left_tokens or not right_tokens:
            return 0.0

        return len(left_tokens & right_tokens) / len(left_tokens | right_tokens)

    @staticmethod
    def similarity(source: Incident, candidate: Incident) -> float:
        """Weighted similarity score, rounded to 3 decimals."""
        same_category = bool(
            source.category_id
            and candidate.category_id
            and source.category_id == candidate.category_id
        )
        shares_configuration_item = bool(
            set(source.configuration_item_ids) & set(candidate.configuration_item_ids)
        )

        score = (
            DuplicateDetector.jaccard(source.title, candidate.title) * DuplicateDetector.TITLE_WEIGHT
            + DuplicateDetector.jaccard(source.description, candidate.description)
            * DuplicateDetector.DESCRIPTION_WEIGHT
            + same_category * DuplicateDetector.CATEGORY_WEIGHT
            + (source.channel == candidate.channel) * DuplicateDetector.CHANNEL_WEIGHT
            + (source.priority == candidate.priority) * DuplicateDetector.PRIORITY_WEIGHT
            + shares_configuration_item * DuplicateDetector.CONFIGURATION_ITEM_WEIGHT
        )
        return round(score, 3)

    @staticmethod
    def rank(
        source: Incident,
        pool: Iterable[Incident],
        limit: int,
        min_score: float = DEFAULT_MIN_SCORE
    ) -> List[DuplicateCandidate]:
        """
        Score a candidate pool against the source.

        Keeps candidates scoring at least ``min_score``, highest first,
        at most ``limit`` of them. The source itself is never a candidate.
        """
        scored = [
            DuplicateCandidate(incident=candidate, similarity_score=DuplicateDetector.similarity(source, candidate))
            for candidate in pool
            if candidate.id != source.id
        ]
        kept = [c for c in scored if c.similarity_score >= min_score]
        kept.sort(key=lambda c: c.similarity_score, reverse=True)
        return kept[:limit]
