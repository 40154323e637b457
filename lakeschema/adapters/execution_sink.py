"""
Execution sink: the boundary through which generated SQL reaches a database.

SQL errors are results (StatementResult.success is False); infrastructure
errors such as a lost connection are raised and fail the run.
"""
from abc import ABC, abstractmethod
import asyncio
from dataclasses import dataclass
import logging
from typing import List, Optional

from .database_adapter import DatabaseAdapter, QueryExecutionError

logger = logging.getLogger("lakeschema.execution")


@dataclass
class StatementResult:
    success: bool
    error: Optional[str] = None


class ExecutionSink(ABC):

    @abstractmethod
    async def execute(self, sql: str) -> StatementResult:
        """Execute a script of one or more statements."""
        pass


class AdapterExecutionSink(ExecutionSink):
    """Runs scripts on a DatabaseAdapter in a worker thread."""

    def __init__(self, adapter: DatabaseAdapter):
        self.adapter = adapter

    async def execute(self, sql: str) -> StatementResult:
        try:
            await asyncio.to_thread(self.adapter.execute_script, sql)
        except QueryExecutionError as e:
            logger.debug(f"Statement failed: {e}")
            return StatementResult(success=False, error=str(e))
        return StatementResult(success=True)


class DryRunExecutionSink(ExecutionSink):
    """Accepts every script without touching a database."""

    def __init__(self):
        self.scripts: List[str] = []

    async def execute(self, sql: str) -> StatementResult:
        self.scripts.append(sql)
        return StatementResult(success=True)
