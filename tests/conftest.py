"""
Shared test fixtures and configuration for pipeline-core.
"""
import os
import tempfile
from pathlib import Path
from typing import Generator
from unittest.mock import AsyncMock, Mock

import pytest

from pipeline_core.broker import InMemoryBroker
from pipeline_core.config import Settings
from pipeline_core.database import MigrationManager, SQLiteProvider
from pipeline_core.database.base import DatabaseProvider
from pipeline_core.entities import (
    FlowCreate,
    InputCreate,
    NodeType,
    OutputCreate,
    PipelineCreate,
    TransformationCreate,
)
from pipeline_core.services import GraphStore, PipelineOrchestrator
from pipeline_core.worker import ProcessorConfig


@pytest.fixture(scope="session")
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def test_settings() -> Settings:
    """Settings with short timings so lifecycle tests finish quickly."""
    return Settings(
        DATABASE_URL="sqlite:///:memory:",
        LOG_LEVEL="DEBUG",
        PROCESSOR_MAX_ATTEMPTS=3,
        PROCESSOR_BACKOFF_BASE=0.01,
        PROCESSOR_BACKOFF_MAX=0.05,
        PROCESSOR_STARTUP_TIMEOUT=2.0,
        SCRIPT_TIMEOUT_SECONDS=1.0,
        STOP_GRACE_SECONDS=0.5,
        TOPIC_BUFFER_SIZE=10,
    )


@pytest.fixture
def processor_config(test_settings: Settings) -> ProcessorConfig:
    return ProcessorConfig.from_settings(test_settings)


@pytest.fixture
def mock_database_provider() -> Mock:
    """Mock database provider for testing."""
    mock_db = Mock(spec=DatabaseProvider)
    mock_db.connect = AsyncMock(return_value=True)
    mock_db.disconnect = AsyncMock()
    mock_db.execute = AsyncMock()
    mock_db.fetch_all = AsyncMock(return_value=[])
    mock_db.fetch_one = AsyncMock(return_value=None)
    mock_db.fetch_val = AsyncMock(return_value=None)
    return mock_db


@pytest.fixture
async def database():
    """Connected, migrated in-memory SQLite provider."""
    provider = SQLiteProvider("sqlite:///:memory:")
    assert await provider.connect()
    await MigrationManager(provider).apply_migrations()
    yield provider
    await provider.disconnect()


@pytest.fixture
async def store(database, test_settings) -> GraphStore:
    return GraphStore(database, test_settings)


@pytest.fixture
def broker() -> InMemoryBroker:
    return InMemoryBroker()


@pytest.fixture
async def orchestrator(store, broker, processor_config):
    orchestrator = PipelineOrchestrator(store, broker, processor_config)
    yield orchestrator
    await orchestrator.shutdown()


class GraphBuilder:
    """Small helper building pipelines through the store."""

    def __init__(self, store: GraphStore):
        self.store = store

    async def pipeline(self, name: str = "P"):
        return await self.store.create_pipeline(PipelineCreate(name=name))

    async def input(self, pipeline_id: int, name: str = "A", topic: str = "t1",
                    schemas=None, broker_address: str = "memory://ext"):
        return await self.store.create_input(pipeline_id, InputCreate(
            name=name, description=f"{name} source", topic=topic,
            schemas=schemas, broker_address=broker_address,
        ))

    async def output(self, pipeline_id: int, name: str = "B", topic: str = "t2",
                     schemas=None, broker_address: str = "memory://ext"):
        return await self.store.create_output(pipeline_id, OutputCreate(
            name=name, topic=topic, schemas=schemas, broker_address=broker_address,
        ))

    async def transformation(self, pipeline_id: int, name: str = "T",
                             script: str = "def run(message):\n    return message\n",
                             schema_in=None, schema_out=None):
        return await self.store.create_transformation(pipeline_id, TransformationCreate(
            name=name, python_script=script, schema_in=schema_in, schema_out=schema_out,
        ))

    async def flow(self, pipeline_id: int, start_type: NodeType, start_id: int,
                   end_type: NodeType, end_id: int):
        return await self.store.create_flow(pipeline_id, FlowCreate(
            start_node_type=start_type, end_node_type=end_type,
            start_node=start_id, end_node=end_id,
        ))

    async def linear(self, script: str = "def run(message):\n    return message\n", **kwargs):
        """Input A -> Transformation T -> Output B."""
        pipeline = await self.pipeline(kwargs.pop("name", "P"))
        pid = pipeline.pipeline_id
        source = await self.input(pid)
        transformation = await self.transformation(pid, script=script, **kwargs)
        sink = await self.output(pid)
        await self.flow(pid, NodeType.INPUT, source.input_id,
                        NodeType.TRANSFORMATION, transformation.transformation_id)
        await self.flow(pid, NodeType.TRANSFORMATION, transformation.transformation_id,
                        NodeType.OUTPUT, sink.output_id)
        return pipeline, source, transformation, sink


@pytest.fixture
def builder(store) -> GraphBuilder:
    return GraphBuilder(store)


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment():
    """Setup test environment configuration."""
    os.environ["PIPELINE_CORE_TEST_MODE"] = "true"
    yield
    os.environ.pop("PIPELINE_CORE_TEST_MODE", None)


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")
    config.addinivalue_line("markers", "database: mark test as requiring database")


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers based on test location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
