"""
Priority Classification
=======================

ITIL priority matrix: priority derived from impact x urgency.

Impact dominates urgency, so the matrix is not symmetric
(impact=medium/urgency=critical is high, impact=critical/urgency=low is medium).
"""

from typing import Dict, List

from src.config import DEFAULT_SLA_TARGETS, Priority, VALID_PRIORITIES


class PriorityClassifier:
    """
    Pure functions for priority classification.

    Stateless; unknown inputs fall back to medium instead of failing.
    """

    # Impact rows, urgency columns
    MATRIX: Dict[str, Dict[str, Priority]] = {
        "critical": {
            "critical": Priority.CRITICAL,
            "high": Priority.CRITICAL,
            "medium": Priority.HIGH,
            "low": Priority.MEDIUM,
        },
        "high": {
            "critical": Priority.CRITICAL,
            "high": Priority.HIGH,
            "medium": Priority.HIGH,
            "low": Priority.MEDIUM,
        },
        "medium": {
            "critical": Priority.HIGH,
            "high": Priority.HIGH,
            "medium": Priority.MEDIUM,
            "low": Priority.LOW,
        },
        "low": {
            "critical": Priority.MEDIUM,
            "high": Priority.MEDIUM,
            "medium": Priority.LOW,
            "low": Priority.LOW,
        },
    }

    WEIGHTS: Dict[str, int] = {
        "critical": 4,
        "high": 3,
        "medium": 2,
        "low": 1,
    }

    @staticmethod
    def _key(value) -> str:
        if isinstance(value, Priority):
            return value.value
        return str(value or "").strip().lower()

    @staticmethod
    def calculate_priority(impact, urgency) -> Priority:
        """
        Look up the priority for an impact/urgency pair.

        Args:
            impact: Impact level (critical/high/medium/low, any case)
            urgency: Urgency level (critical/high/medium/low, any case)

        Returns:
            Priority from the matrix, medium for unrecognized input
        """
        row = PriorityClassifier.MATRIX.get(PriorityClassifier._key(impact))
        if row is None:
            return Priority.MEDIUM
        return row.get(PriorityClassifier._key(urgency), Priority.MEDIUM)

    @staticmethod
    def priority_weight(priority) -> int:
        """Ordering weight, higher is more important. Never persisted."""
        return PriorityClassifier.WEIGHTS.get(PriorityClassifier._key(priority), 2)

    @staticmethod
    def compare_priorities(a, b) -> int:
        """Positive if a outranks b, negative if b outranks a, 0 if equal."""
        return PriorityClassifier.priority_weight(a) - PriorityClassifier.priority_weight(b)

    @staticmethod
    def recommended_sla(priority) -> Dict[str, int]:
        """Default response/resolution minutes for a priority."""
        key = PriorityClassifier._key(priority)
        return dict(DEFAULT_SLA_TARGETS.get(key, DEFAULT_SLA_TARGETS[Priority.MEDIUM.value]))

    @staticmethod
    def matrix_as_rows() -> List[Dict[str, str]]:
        """All 16 matrix cells as flat rows, impact-major."""
        return [
            {
                "impact": impact,
                "urgency": urgency,
                "priority": PriorityClassifier.calculate_priority(impact, urgency).value,
            }
            for impact in VALID_PRIORITIES
            for urgency in VALID_PRIORITIES
        ]
