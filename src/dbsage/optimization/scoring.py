"""Health score schedules.

Both schedules start at 100 and deduct per issue; results are clamped to
0..100.
"""

from typing import Iterable, Sequence

from .models import MAX_SCORE, QueryOptimizationSuggestion, clamp_score

PRIORITY_PENALTIES = {"high": 15, "medium": 10, "low": 5}
BOTTLENECK_PENALTY = 5
SQLITE_BOTTLENECK_PENALTY = 10


def score_analysis(slow_query_count: int, index_suggestion_count: int, bottleneck_count: int) -> int:
    """Score used for PostgreSQL analyses.

    Deducts 20 for more than 10 slow queries (10 for more than 5), 15 for
    more than 5 index suggestions (8 for more than 2) and 5 per bottleneck.
    """
    score = MAX_SCORE

    if slow_query_count > 10:
        score -= 20
    elif slow_query_count > 5:
        score -= 10

    if index_suggestion_count > 5:
        score -= 15
    elif index_suggestion_count > 2:
        score -= 8

    score -= bottleneck_count * BOTTLENECK_PENALTY
    return clamp_score(score)


def score_recommendations(
    bottlenecks: Sequence[str],
    recommendations: Iterable[QueryOptimizationSuggestion],
) -> int:
    """Score used for SQLite analyses.

    Deducts 10 per bottleneck and 15/10/5 per high/medium/low recommendation.
    """
    score = MAX_SCORE - len(bottlenecks) * SQLITE_BOTTLENECK_PENALTY
    for recommendation in recommendations:
        score -= PRIORITY_PENALTIES.get(recommendation.priority, PRIORITY_PENALTIES["low"])
    return clamp_score(score)
