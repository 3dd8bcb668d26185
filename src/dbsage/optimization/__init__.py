"""Query optimization for dbsage.

Modules:
    models: Suggestion, pattern and analysis dataclasses
    rules: Static anti-pattern rules over raw statement text
    scoring: Health score schedules
    base: Optimizer contract and shared index heuristics
    postgresql: PostgreSQL optimizer
    sqlite: SQLite optimizer
"""

from ..core.exceptions import ErrorCodes, ValidationError
from ..database.base import DatabaseAdapter
from .base import QueryOptimizer
from .models import (
    IndexSuggestion,
    PerformanceAnalysis,
    QueryOptimizationSuggestion,
    QueryPattern,
    clamp_score,
)
from .postgresql import PostgreSQLOptimizer
from .rules import COMMON_RULES, SQLITE_RULES, StaticRule, apply_rules, extract_tables
from .scoring import score_analysis, score_recommendations
from .sqlite import SQLiteOptimizer

_OPTIMIZERS = {
    "postgres": PostgreSQLOptimizer,
    "sqlite": SQLiteOptimizer,
}


def create_optimizer(adapter: DatabaseAdapter) -> QueryOptimizer:
    """Optimizer matching the adapter's backend.

    Raises:
        ValidationError: If no optimizer handles the backend
    """
    try:
        optimizer_class = _OPTIMIZERS[adapter.platform]
    except KeyError:
        raise ValidationError(
            f"No optimizer available for database type: {adapter.platform}",
            code=ErrorCodes.INVALID_ARGUMENT,
            context={"kind": adapter.platform},
        ) from None
    return optimizer_class(adapter)


__all__ = [
    "QueryOptimizer",
    "PostgreSQLOptimizer",
    "SQLiteOptimizer",
    "create_optimizer",
    "IndexSuggestion",
    "PerformanceAnalysis",
    "QueryOptimizationSuggestion",
    "QueryPattern",
    "clamp_score",
    "COMMON_RULES",
    "SQLITE_RULES",
    "StaticRule",
    "apply_rules",
    "extract_tables",
    "score_analysis",
    "score_recommendations",
]
