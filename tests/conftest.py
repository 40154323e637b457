"""
Conftest for LakeSchema tests.

Ensures the project root is on sys.path so that 'lakeschema', 'configs'
and 'cli' resolve without an install, and provides the scripted doubles
the pipeline tests share: a gateway that answers by purpose, a recording
execution sink, and in-memory storage, events and checkpoints.
"""

import json
import sys
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

import pytest

# Add project root to sys.path
project_root = str(Path(__file__).parent.parent)
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from lakeschema.adapters import ExecutionSink, StatementResult  # noqa: E402
from lakeschema.orchestrator import LLMResponse, ModelGateway, build_orchestrator  # noqa: E402
from lakeschema.storage import (  # noqa: E402
    EventPublisher,
    FileSource,
    InMemoryEventSink,
    InMemoryStorage,
    MemoryCheckpointStore,
)


# =============================================================================
# TEST DOUBLES
# =============================================================================

Reply = Union[str, Exception, Callable[[str], str]]


class ScriptedGateway(ModelGateway):
    """
    Answers each purpose from a script.

    A script entry is a single reply or a list consumed in order (the last
    reply repeats). A reply may be a string, an exception to raise, or a
    callable receiving the prompt.
    """

    def __init__(self, script: Dict[str, Union[Reply, List[Reply]]], cost: float = 0.001):
        self.script = script
        self.cost = cost
        self.calls: List[Dict[str, str]] = []

    def count(self, purpose: str) -> int:
        return sum(1 for call in self.calls if call["purpose"] == purpose)

    async def invoke(self, prompt: str, purpose: str = "") -> LLMResponse:
        self.calls.append({"purpose": purpose, "prompt": prompt})
        entry = self.script[purpose]
        if isinstance(entry, list):
            entry = entry[min(self.count(purpose) - 1, len(entry) - 1)]
        if isinstance(entry, BaseException):
            raise entry
        content = entry(prompt) if callable(entry) else entry
        return LLMResponse(content=content, model="scripted/model", cost=self.cost)


class RecordingExecutionSink(ExecutionSink):
    """Records every script; scripts containing a failing marker fail."""

    def __init__(self, failing_markers: Optional[List[str]] = None):
        self.failing_markers = failing_markers or []
        self.scripts: List[str] = []

    async def execute(self, sql: str) -> StatementResult:
        self.scripts.append(sql)
        for marker in self.failing_markers:
            if marker in sql:
                return StatementResult(success=False, error=f"rejected statement containing {marker}")
        return StatementResult(success=True)


# =============================================================================
# CANNED DATA
# =============================================================================

CUSTOMERS_CSV = (
    "customer_id,name,email\n"
    "1,Ada Lovelace,ada@example.com\n"
    "2,Grace Hopper,grace@example.com\n"
)

ORDERS_JSON = json.dumps({
    "results": [
        {"order_id": 10, "customer_id": 1, "total": 42.5},
        {"order_id": 11, "customer_id": 2, "total": 19.99},
    ]
})

SHIPMENTS_TXT = (
    "shipment_id|order_id|customer_id\n"
    "500|10|1\n"
    "501|11|2\n"
)

ENTITIES = {
    "entities": [
        {
            "tableName": "orders",
            "columns": [
                {"name": "order_id", "type": "INTEGER", "nullable": False, "isPrimaryKey": True},
                {"name": "customer_id", "type": "INTEGER", "nullable": False},
                {"name": "total", "type": "REAL"},
            ],
            "foreignKeys": [{"column": "customer_id", "referencesTable": "customers",
                             "referencesColumn": "customer_id"}],
            "sourceFiles": ["orders.json"],
        },
        {
            "tableName": "customers",
            "columns": [
                {"name": "customer_id", "type": "INTEGER", "nullable": False, "isPrimaryKey": True},
                {"name": "name", "type": "TEXT"},
                {"name": "email", "type": "TEXT"},
            ],
            "foreignKeys": [],
            "sourceFiles": ["customers.csv"],
        },
        {
            "tableName": "shipments",
            "columns": [
                {"name": "shipment_id", "type": "INTEGER", "nullable": False, "isPrimaryKey": True},
                {"name": "order_id", "type": "INTEGER"},
                {"name": "customer_id", "type": "INTEGER"},
            ],
            "foreignKeys": [
                {"column": "order_id", "referencesTable": "orders", "referencesColumn": "order_id"},
                {"column": "customer_id", "referencesTable": "customers", "referencesColumn": "customer_id"},
            ],
            "sourceFiles": ["shipments.txt"],
        },
    ]
}

# Children first on purpose: the pipeline must reorder them
SCHEMA_REPLY = """Here is the schema:
```sql
CREATE TABLE shipments (
    shipment_id INTEGER PRIMARY KEY,
    order_id INTEGER REFERENCES orders(order_id),
    customer_id INTEGER REFERENCES customers(customer_id)
);
CREATE TABLE orders (
    order_id INTEGER PRIMARY KEY,
    customer_id INTEGER NOT NULL REFERENCES customers(customer_id),
    total REAL
);
CREATE TABLE customers (
    customer_id INTEGER PRIMARY KEY,
    name TEXT,
    email TEXT
);
```
Let me know if you need changes."""

INSERTS_REPLY = """```sql
INSERT INTO shipments (shipment_id, order_id, customer_id) VALUES (500, 10, 1);
INSERT INTO orders (order_id, customer_id, total) VALUES (10, 1, 42.5);
INSERT INTO customers (customer_id, name, email) VALUES (1, 'Ada Lovelace', 'ada@example.com');
INSERT INTO customers (customer_id, name, email) VALUES (2, 'Grace Hopper', 'grace@example.com');
INSERT INTO orders (order_id, customer_id, total) VALUES (11, 2, 19.99);
```"""

NO_ISSUES = json.dumps({"issues": []})


def happy_script() -> dict:
    return {
        "infer_entities": json.dumps(ENTITIES),
        "generate_schema": SCHEMA_REPLY,
        "validate_schema": NO_ISSUES,
        "correct_schema": json.dumps(ENTITIES),
        "generate_inserts": INSERTS_REPLY,
    }


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def storage():
    return InMemoryStorage({
        "lake/customers.csv": CUSTOMERS_CSV.encode("utf-8"),
        "lake/orders.json": ORDERS_JSON.encode("utf-8"),
        "lake/shipments.txt": SHIPMENTS_TXT.encode("utf-8"),
    })


@pytest.fixture
def event_sink():
    return InMemoryEventSink()


@pytest.fixture
def checkpoints():
    return MemoryCheckpointStore()


@pytest.fixture
def execution_sink():
    return RecordingExecutionSink()


@pytest.fixture
def make_orchestrator(storage, event_sink, checkpoints, execution_sink):
    """Build an orchestrator over the shared doubles with the given gateway."""

    def _make(gateway: ModelGateway, sink: Optional[ExecutionSink] = None):
        return build_orchestrator(
            gateway=gateway,
            publisher=EventPublisher(event_sink),
            file_source=FileSource(storage, sample_data_dir=None),
            execution_sink=sink or execution_sink,
            checkpoints=checkpoints,
            statement_delay=0,
        )

    return _make


FILE_KEYS = ["lake/customers.csv", "lake/orders.json", "lake/shipments.txt"]
