"""Database entity models shared by both backends."""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from ..core.exceptions import ErrorCodes, QueryError


def to_jsonable(value: Any) -> Any:
    """Render a cell or field value as a JSON-ready value."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [to_jsonable(v) for v in value]
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


class _Serializable:
    def to_dict(self) -> Dict[str, Any]:
        return to_jsonable(asdict(self))


class ConnectionStatus(str, Enum):
    """Liveness state of a registered connection."""

    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    UNHEALTHY = "unhealthy"
    ACTIVE = "active"


@dataclass(frozen=True)
class QueryResult(_Serializable):
    """Tabular result of one statement.

    Every row is aligned to ``columns`` and ``row_count`` equals ``len(rows)``.
    """
    columns: List[str]
    rows: List[List[Any]]
    row_count: int
    duration: str

    def __post_init__(self) -> None:
        if self.row_count != len(self.rows):
            raise QueryError(
                f"Row count {self.row_count} does not match {len(self.rows)} rows",
                code=ErrorCodes.QUERY_EXECUTION_FAILED,
            )
        width = len(self.columns)
        for index, row in enumerate(self.rows):
            if len(row) != width:
                raise QueryError(
                    f"Row {index} has {len(row)} cells, expected {width}",
                    code=ErrorCodes.QUERY_EXECUTION_FAILED,
                )

    @classmethod
    def build(cls, columns: Sequence[str], rows: Sequence[Sequence[Any]], duration: str) -> "QueryResult":
        materialized = [list(row) for row in rows]
        return cls(columns=list(columns), rows=materialized, row_count=len(materialized), duration=duration)

    def records(self) -> List[Dict[str, Any]]:
        """Rows as column-keyed dictionaries."""
        return [dict(zip(self.columns, row)) for row in self.rows]


@dataclass
class TableInfo(_Serializable):
    table_name: str
    schema: str
    table_type: str
    description: str = ""


@dataclass
class ColumnInfo(_Serializable):
    column_name: str
    data_type: str
    is_nullable: bool
    default_value: Optional[str] = None
    character_maximum_length: Optional[int] = None
    numeric_precision: Optional[int] = None
    numeric_scale: Optional[int] = None
    is_primary_key: bool = False
    is_foreign_key: bool = False
    description: str = ""


@dataclass
class IndexInfo(_Serializable):
    index_name: str
    is_unique: bool
    is_primary: bool
    columns: List[str]
    index_type: str = "btree"
    tablespace: str = ""
    description: str = ""


@dataclass
class TableStats(_Serializable):
    """Per-table activity and size counters.

    Backends that cannot provide a field leave it zero or empty.
    """
    table_name: str
    row_count: int = 0
    table_size: str = ""
    index_size: str = ""
    total_size: str = ""
    seq_scan: int = 0
    seq_tup_read: int = 0
    idx_scan: int = 0
    idx_tup_fetch: int = 0
    n_tup_ins: int = 0
    n_tup_upd: int = 0
    n_tup_del: int = 0
    last_vacuum: Optional[datetime] = None
    last_autovacuum: Optional[datetime] = None
    last_analyze: Optional[datetime] = None
    last_autoanalyze: Optional[datetime] = None


@dataclass
class TableSize(_Serializable):
    schema: str
    table_name: str
    size: str
    size_bytes: int = 0
    table_size: str = ""
    index_size: str = ""


@dataclass
class SlowQuery(_Serializable):
    query: str
    calls: int
    total_time: float
    mean_time: float
    min_time: float = 0.0
    max_time: float = 0.0
    stddev_time: float = 0.0
    rows: int = 0


@dataclass
class DatabaseSize(_Serializable):
    database_name: str
    size: str
    size_bytes: int = 0


@dataclass
class ActiveConnection(_Serializable):
    pid: int
    user: str
    database: str
    client_addr: str
    state: str
    query: str
    duration: str


@dataclass
class ConnectionInfo(_Serializable):
    """A registered connection as reported by the registry listing."""
    name: str
    kind: str
    endpoint: str
    description: str = ""
    status: ConnectionStatus = ConnectionStatus.DISCONNECTED
    is_current: bool = False
    last_used: Optional[datetime] = None
    extra: Dict[str, Any] = field(default_factory=dict)
