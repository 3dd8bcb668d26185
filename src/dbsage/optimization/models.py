"""Optimizer result models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from ..database.models import _Serializable

PRIORITIES = ("high", "medium", "low")
SUGGESTION_TYPES = ("index", "rewrite", "structure")
PATTERN_TYPES = ("slow", "frequent", "complex", "basic")

MIN_SCORE = 0
MAX_SCORE = 100


def clamp_score(score: int) -> int:
    return max(MIN_SCORE, min(MAX_SCORE, int(score)))


def analysis_timestamp() -> str:
    """Current time as an ISO-8601 string with UTC offset."""
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


@dataclass
class QueryOptimizationSuggestion(_Serializable):
    """One piece of advice about a query or table.

    Attributes:
        type: ``index``, ``rewrite`` or ``structure``
        priority: ``high``, ``medium`` or ``low``
        description: One-line summary
        details: Supporting detail
        impact: Expected effect of following the advice
        before_sql: Statement the advice applies to
        after_sql: Suggested replacement statement
        estimated_cost: Planner cost estimate backing the advice
    """
    type: str
    priority: str
    description: str
    details: str = ""
    impact: str = ""
    before_sql: Optional[str] = None
    after_sql: Optional[str] = None
    estimated_cost: Optional[float] = None


@dataclass
class IndexSuggestion(_Serializable):
    """A proposed index. Single-column proposals are named ``idx_<table>_<column>``."""
    table_name: str
    index_name: str
    columns: List[str]
    index_type: str = "btree"
    reason: str = ""
    impact: str = ""
    create_sql: str = ""
    estimated_size: str = ""


@dataclass
class QueryPattern(_Serializable):
    pattern_type: str
    query: str
    count: int
    total_time: float
    avg_time: float
    tables: List[str] = field(default_factory=list)
    suggestions: List[QueryOptimizationSuggestion] = field(default_factory=list)


@dataclass
class PerformanceAnalysis(_Serializable):
    """Rollup of an analysis run. ``overall_score`` is kept within 0..100."""
    analysis_date: str = field(default_factory=analysis_timestamp)
    database_size: str = ""
    table_count: int = 0
    index_count: int = 0
    slow_query_count: int = 0
    bottlenecks: List[str] = field(default_factory=list)
    index_suggestions: List[IndexSuggestion] = field(default_factory=list)
    query_patterns: List[QueryPattern] = field(default_factory=list)
    overall_score: int = MAX_SCORE
    recommendations: List[QueryOptimizationSuggestion] = field(default_factory=list)

    def __setattr__(self, name, value) -> None:
        if name == "overall_score":
            value = clamp_score(value)
        super().__setattr__(name, value)
