from typing import Any, Dict, Generic, List, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar('T')


class WhereClause(BaseModel):
    """Arguments of a query.

    ``args`` holds the known field values; the planner picks the index whose
    hash fields, followed by a prefix of its sort fields, cover them exactly.
    """

    args: Dict[str, Any] = Field(default_factory=dict)
    index: Optional[str] = None
    sort_by: Optional[str] = None
    sort: Literal['asc', 'desc'] = 'desc'
    cursor: Optional[Dict[str, Any]] = None
    limit: Optional[int] = Field(default=None, gt=0)


class QueryResult(BaseModel, Generic[T]):
    """One page of query results."""

    results: List[T] = Field(default_factory=list)
    next_page_args: Optional[WhereClause] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)
