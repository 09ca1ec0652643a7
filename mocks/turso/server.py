"""
Mock Turso server emulating the /v2/pipeline HTTP API.

Statements run against an in-memory SQLite database and results are
returned in the pipeline envelope, with every non-null cell sent as text.
"""

import sqlite3
import threading
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Header, HTTPException
from pydantic import BaseModel

from shared.logging import get_logger


class MockStatement(BaseModel):
    sql: str


class MockRequestItem(BaseModel):
    type: str
    stmt: Optional[MockStatement] = None


class MockPipelineRequest(BaseModel):
    requests: List[MockRequestItem]


def _cell(value: Any) -> Dict[str, Any]:
    if value is None:
        return {"type": "null"}
    if isinstance(value, int):
        return {"type": "integer", "value": str(value)}
    if isinstance(value, float):
        return {"type": "float", "value": str(value)}
    return {"type": "text", "value": str(value)}


class MockTursoServer:
    """Mock Turso server implementation."""

    def __init__(self, auth_token: str = "test-token", port: int = 8080):
        self.auth_token = auth_token
        self.port = port
        self.logger = get_logger("mock.turso")
        self.app = FastAPI(title="Mock Turso", version="1.0.0")

        # Shared across request threads; guarded by _lock
        self._connection = sqlite3.connect(":memory:", check_same_thread=False)
        self._lock = threading.Lock()

        # Test hooks
        self.fail_next: List[int] = []
        self.request_count = 0

        self._setup_routes()

    def _setup_routes(self):
        """Set up pipeline routes."""

        @self.app.get("/health")
        async def health():
            return {"status": "ok"}

        @self.app.post("/v2/pipeline")
        async def pipeline(body: MockPipelineRequest, authorization: Optional[str] = Header(None)):
            self.request_count += 1

            if authorization != f"Bearer {self.auth_token}":
                raise HTTPException(status_code=401, detail="Unauthorized")

            if self.fail_next:
                status_code = self.fail_next.pop(0)
                raise HTTPException(status_code=status_code, detail="Injected failure")

            results = []
            for item in body.requests:
                if item.type == "close":
                    results.append({"type": "ok", "response": {"type": "close"}})
                    continue
                if item.type != "execute" or item.stmt is None:
                    results.append({"type": "error", "error": {"message": f"Unsupported request type: {item.type}"}})
                    continue
                results.append(self._execute(item.stmt.sql))

            return {"baton": None, "base_url": None, "results": results}

    def _execute(self, sql: str) -> Dict[str, Any]:
        """Execute one statement and wrap it as a pipeline result."""
        try:
            with self._lock:
                cursor = self._connection.execute(sql)
                rows = cursor.fetchall()
                description = cursor.description or []
                self._connection.commit()
                last_rowid = cursor.lastrowid
                affected = cursor.rowcount if cursor.rowcount >= 0 else 0
        except sqlite3.Error as exc:
            self.logger.warning("Statement failed", sql=sql, error=str(exc))
            return {"type": "error", "error": {"message": str(exc), "code": "SQLITE_ERROR"}}

        return {
            "type": "ok",
            "response": {
                "type": "execute",
                "result": {
                    "cols": [{"name": column[0], "decltype": None} for column in description],
                    "rows": [[_cell(value) for value in row] for row in rows],
                    "affected_row_count": affected,
                    "last_insert_rowid": str(last_rowid) if last_rowid else None,
                },
            },
        }


def create_app(auth_token: str = "test-token"):
    """Create mock Turso application."""
    server = MockTursoServer(auth_token=auth_token)
    return server.app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(create_app(), host="0.0.0.0", port=8080)
