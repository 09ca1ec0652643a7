"""
Wire models for the Turso HTTP pipeline API.
"""

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Statement(BaseModel):
    """SQL statement sent to the store."""
    sql: str


class PipelineRequestItem(BaseModel):
    """Single request inside a pipeline call."""
    type: str = "execute"
    stmt: Statement


class PipelineRequest(BaseModel):
    """Body of POST /v2/pipeline."""
    requests: List[PipelineRequestItem]

    @classmethod
    def execute(cls, sql: str) -> "PipelineRequest":
        """Build a single-statement execute request."""
        return cls(requests=[PipelineRequestItem(type="execute", stmt=Statement(sql=sql))])


class Column(BaseModel):
    """Result column description."""
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    type: Optional[str] = Field(default=None, alias="decltype")


class Cell(BaseModel):
    """Typed cell value; the store sends integers and text as strings."""
    model_config = ConfigDict(extra="ignore")

    type: Optional[str] = None
    value: Optional[Any] = None

    @property
    def text(self) -> Optional[str]:
        """Cell value rendered as text, None for SQL NULL."""
        if self.value is None:
            return None
        return str(self.value)


class ExecuteResult(BaseModel):
    """Rows and columns produced by one statement."""
    model_config = ConfigDict(extra="ignore")

    cols: List[Column] = Field(default_factory=list)
    rows: List[List[Optional[Cell]]] = Field(default_factory=list)
    affected_row_count: Optional[int] = None
    last_insert_rowid: Optional[str] = None


class StreamResponse(BaseModel):
    """Response body of a successful pipeline item."""
    model_config = ConfigDict(extra="ignore")

    type: Optional[str] = None
    result: Optional[ExecuteResult] = None


class StreamError(BaseModel):
    """Error body of a failed pipeline item."""
    model_config = ConfigDict(extra="ignore")

    message: Optional[str] = None
    code: Optional[str] = None


class PipelineResult(BaseModel):
    """Outcome of one pipeline item."""
    model_config = ConfigDict(extra="ignore")

    type: Optional[str] = None
    response: Optional[StreamResponse] = None
    error: Optional[StreamError] = None


class PipelineResponse(BaseModel):
    """Body returned by POST /v2/pipeline."""
    model_config = ConfigDict(extra="ignore")

    results: List[PipelineResult] = Field(default_factory=list)

    def has_result_set(self) -> bool:
        """True when at least one statement produced a response."""
        return any(item.response is not None for item in self.results)

    def first_result(self) -> Optional[ExecuteResult]:
        """Result of the first statement, if it produced one."""
        if not self.results or self.results[0].response is None:
            return None
        return self.results[0].response.result

    def rows(self) -> List[List[Optional[Cell]]]:
        """Rows of the first statement, empty when absent."""
        result = self.first_result()
        return result.rows if result is not None else []

    def errors(self) -> List[str]:
        """Error messages reported by failed pipeline items."""
        return [
            (item.error.message or "unknown error") if item.error else "unknown error"
            for item in self.results
            if item.type == "error"
        ]
