"""Static anti-pattern rules.

Each rule looks at the raw statement text only; no parsing is attempted.
All matching is case-insensitive.
"""

import re
from dataclasses import dataclass
from typing import Callable, List, Pattern, Sequence

from .models import QueryOptimizationSuggestion

_SELECT_STAR = re.compile(r"\bSELECT\s+\*", re.IGNORECASE)
_LEADING_WILDCARD = re.compile(r"\bLIKE\s+'%", re.IGNORECASE)
_SELECT_KEYWORD = re.compile(r"\bSELECT\b", re.IGNORECASE)
_DISTINCT = re.compile(r"\bDISTINCT\b", re.IGNORECASE)
_UNION = re.compile(r"\bUNION\b", re.IGNORECASE)
_UNION_ALL = re.compile(r"\bUNION\s+ALL\b", re.IGNORECASE)
_FUNCTION_IN_WHERE = re.compile(r"WHERE\s+\w+\s*\(", re.IGNORECASE)
_WHERE = re.compile(r"\bWHERE\b", re.IGNORECASE)
_LIMIT = re.compile(r"\bLIMIT\b", re.IGNORECASE)
_ORDER_BY = re.compile(r"\bORDER\s+BY\b", re.IGNORECASE)

POSTGRES_TABLE_PATTERN = re.compile(r"FROM\s+(\w+)|JOIN\s+(\w+)", re.IGNORECASE)
SQLITE_TABLE_PATTERN = re.compile(r"(?:from|join|update|into)\s+([a-zA-Z_][a-zA-Z0-9_]*)", re.IGNORECASE)


@dataclass(frozen=True)
class StaticRule:
    """A text predicate paired with the advice it produces."""
    name: str
    matches: Callable[[str], bool]
    suggestion: QueryOptimizationSuggestion


def _multiple_selects(sql: str) -> bool:
    return len(_SELECT_KEYWORD.findall(sql)) > 1


def _union_without_all(sql: str) -> bool:
    return len(_UNION.findall(sql)) > len(_UNION_ALL.findall(sql))


def _unbounded_select(sql: str) -> bool:
    return sql.lstrip().lower().startswith("select") and not _WHERE.search(sql) and not _LIMIT.search(sql)


def _order_without_limit(sql: str) -> bool:
    return bool(_ORDER_BY.search(sql)) and not _LIMIT.search(sql)


COMMON_RULES: List[StaticRule] = [
    StaticRule(
        "select_star",
        lambda sql: bool(_SELECT_STAR.search(sql)),
        QueryOptimizationSuggestion(
            type="rewrite",
            priority="low",
            description="Avoid using SELECT *, specify only needed columns",
            details="SELECT * transfers unnecessary data and reduces query cache efficiency",
            impact="Low to medium performance improvement",
        ),
    ),
    StaticRule(
        "leading_wildcard",
        lambda sql: bool(_LEADING_WILDCARD.search(sql)),
        QueryOptimizationSuggestion(
            type="index",
            priority="medium",
            description="LIKE pattern starting with % cannot use regular indexes",
            details="Consider using full-text search or trigram indexes for this pattern",
            impact="Medium performance improvement expected",
        ),
    ),
    StaticRule(
        "subquery",
        _multiple_selects,
        QueryOptimizationSuggestion(
            type="rewrite",
            priority="medium",
            description="Consider rewriting subqueries as JOINs",
            details="JOINs are often more efficient than correlated subqueries",
            impact="Medium performance improvement expected",
        ),
    ),
    StaticRule(
        "distinct",
        lambda sql: bool(_DISTINCT.search(sql)),
        QueryOptimizationSuggestion(
            type="rewrite",
            priority="medium",
            description="Verify if DISTINCT is necessary",
            details="DISTINCT can be expensive; ensure it's required and consider using GROUP BY if appropriate",
            impact="Medium performance improvement if unnecessary",
        ),
    ),
    StaticRule(
        "union",
        _union_without_all,
        QueryOptimizationSuggestion(
            type="rewrite",
            priority="low",
            description="Consider using UNION ALL instead of UNION if duplicates are acceptable",
            details="UNION performs duplicate elimination which is expensive",
            impact="Low to medium performance improvement",
        ),
    ),
    StaticRule(
        "function_in_where",
        lambda sql: bool(_FUNCTION_IN_WHERE.search(sql)),
        QueryOptimizationSuggestion(
            type="rewrite",
            priority="high",
            description="Avoid using functions on columns in WHERE clause",
            details="Functions on columns prevent index usage",
            impact="High performance improvement expected",
        ),
    ),
]

SQLITE_RULES: List[StaticRule] = [
    StaticRule(
        "unbounded_select",
        _unbounded_select,
        QueryOptimizationSuggestion(
            type="rewrite",
            priority="high",
            description="Consider adding WHERE clause or LIMIT to avoid full table scan",
            details="A SELECT with neither WHERE nor LIMIT reads every row",
            impact="High performance improvement expected",
        ),
    ),
    StaticRule(
        "order_without_limit",
        _order_without_limit,
        QueryOptimizationSuggestion(
            type="rewrite",
            priority="medium",
            description="ORDER BY without LIMIT may sort unnecessary rows - consider adding LIMIT",
            details="Sorting the full result is wasted work when only the first rows are used",
            impact="Medium performance improvement expected",
        ),
    ),
]


def apply_rules(sql: str, rules: Sequence[StaticRule]) -> List[QueryOptimizationSuggestion]:
    """Suggestions of every rule matching ``sql``, in rule order."""
    suggestions = []
    for rule in rules:
        if rule.matches(sql):
            suggestion = rule.suggestion
            suggestions.append(
                QueryOptimizationSuggestion(
                    type=suggestion.type,
                    priority=suggestion.priority,
                    description=suggestion.description,
                    details=suggestion.details,
                    impact=suggestion.impact,
                    before_sql=sql if suggestion.type == "rewrite" else None,
                )
            )
    return suggestions


def extract_tables(sql: str, pattern: Pattern[str] = POSTGRES_TABLE_PATTERN) -> List[str]:
    """Table names following FROM/JOIN (and UPDATE/INTO for SQLite), first occurrence order."""
    tables: List[str] = []
    for match in pattern.finditer(sql):
        for name in match.groups():
            if name and name not in tables:
                tables.append(name)
    return tables
