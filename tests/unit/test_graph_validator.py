"""
Unit tests for pipeline_core.services.graph_validator.

Graphs are built in memory; no database is involved.
"""

from datetime import datetime, timezone

import pytest

from pipeline_core.entities import (
    Flow,
    Input,
    NodeType,
    Output,
    Pipeline,
    PipelineGraph,
    Transformation,
)
from pipeline_core.services.graph_validator import (
    GraphValidator,
    find_transformation_cycle,
    topological_order,
)

NOW = datetime(2026, 1, 1, tzinfo=timezone.utc)
IN, OUT, TR = NodeType.INPUT, NodeType.OUTPUT, NodeType.TRANSFORMATION


def make_input(input_id, name="A", topic="t1", schemas=None, broker_address="memory://ext"):
    return Input(input_id=input_id, name=name, description="", topic=topic, schemas=schemas,
                 broker_address=broker_address, created_at=NOW)


def make_output(output_id, name="B", topic="t2", schemas=None, broker_address="memory://ext"):
    return Output(output_id=output_id, name=name, topic=topic, schemas=schemas,
                  broker_address=broker_address, created_at=NOW)


def make_transformation(transformation_id, name="T", schema_in=None, schema_out=None):
    return Transformation(transformation_id=transformation_id, name=name, schema_in=schema_in,
                          schema_out=schema_out, python_script="def run(m):\n    return m\n",
                          created_at=NOW)


def make_flow(flow_id, start_type, start, end_type, end):
    return Flow(flow_id=flow_id, start_node_type=start_type, end_node_type=end_type,
                start_node=start, end_node=end, created_at=NOW)


def make_graph(inputs=(), outputs=(), transformations=(), flows=()):
    return PipelineGraph(
        pipeline=Pipeline(pipeline_id=1, name="P", created_at=NOW),
        inputs=list(inputs),
        outputs=list(outputs),
        transformations=list(transformations),
        flows=list(flows),
    )


@pytest.fixture
def validator():
    return GraphValidator()


class TestStructure:
    """Role, reference and cycle checks."""

    def test_linear_pipeline_without_schemas(self, validator):
        graph = make_graph(
            inputs=[make_input(1)],
            outputs=[make_output(1)],
            transformations=[make_transformation(1)],
            flows=[make_flow(1, IN, 1, TR, 1), make_flow(2, TR, 1, OUT, 1)],
        )
        result = validator.validate(graph)

        assert result.valid is True
        assert result.errors == []
        assert result.warnings == ["T: unchecked contract on input", "T: unchecked contract on output"]
        assert result.pipeline_name == "P"

    def test_output_as_flow_source(self, validator):
        graph = make_graph(
            outputs=[make_output(1)],
            transformations=[make_transformation(1)],
            flows=[make_flow(7, OUT, 1, TR, 1)],
        )
        result = validator.validate(graph)

        assert result.valid is False
        assert "Flow 7: output node cannot be a flow source" in result.errors

    def test_input_as_flow_target(self, validator):
        graph = make_graph(
            inputs=[make_input(1)],
            transformations=[make_transformation(1)],
            flows=[make_flow(3, TR, 1, IN, 1)],
        )
        result = validator.validate(graph)
        assert result.errors == ["Flow 3: input node cannot be a flow target"]

    def test_dangling_endpoint(self, validator):
        graph = make_graph(
            inputs=[make_input(1)],
            flows=[make_flow(4, IN, 1, TR, 99)],
        )
        result = validator.validate(graph)
        assert result.errors == ["Flow 4: transformation:99 does not exist"]

    def test_cycle_names_nodes(self, validator):
        graph = make_graph(
            inputs=[make_input(1)],
            transformations=[make_transformation(1, "T1"), make_transformation(2, "T2"),
                             make_transformation(3, "T3")],
            flows=[
                make_flow(1, IN, 1, TR, 1),
                make_flow(2, TR, 1, TR, 2),
                make_flow(3, TR, 2, TR, 3),
                make_flow(4, TR, 3, TR, 2),
            ],
        )
        result = validator.validate(graph)

        assert result.valid is False
        cycle_errors = [e for e in result.errors if e.startswith("Cycle detected")]
        assert cycle_errors == [
            "Cycle detected among transformations: T2 (transformation:2) -> "
            "T3 (transformation:3) -> T2 (transformation:2)"
        ]

    def test_self_loop_is_a_cycle(self, validator):
        graph = make_graph(
            transformations=[make_transformation(1)],
            flows=[make_flow(1, TR, 1, TR, 1)],
        )
        result = validator.validate(graph)
        assert any("T (transformation:1) -> T (transformation:1)" in e for e in result.errors)


class TestSchemas:
    """Schema contract checks between neighbours."""

    PRODUCED = {"type": "object", "properties": {"id": {"type": "integer"}, "name": {"type": "string"}}}

    def test_compatible_schemas_no_warnings(self, validator):
        graph = make_graph(
            inputs=[make_input(1, schemas=self.PRODUCED)],
            outputs=[make_output(1, schemas={"id": "number"})],
            transformations=[make_transformation(1, schema_in={"id": "integer"}, schema_out=self.PRODUCED)],
            flows=[make_flow(1, IN, 1, TR, 1), make_flow(2, TR, 1, OUT, 1)],
        )
        result = validator.validate(graph)
        assert result.valid is True
        assert result.warnings == []

    def test_input_mismatch_is_an_error(self, validator):
        graph = make_graph(
            inputs=[make_input(1, schemas=self.PRODUCED)],
            transformations=[make_transformation(1, schema_in={"email": "string"})],
            flows=[make_flow(1, IN, 1, TR, 1)],
        )
        result = validator.validate(graph)
        assert result.valid is False
        assert result.errors == ["T: input schema incompatible with A (input:1): email: missing field"]

    def test_output_mismatch_is_an_error(self, validator):
        graph = make_graph(
            outputs=[make_output(1, schemas={"id": "string"})],
            transformations=[make_transformation(1, schema_out={"id": "integer"})],
            flows=[make_flow(1, TR, 1, OUT, 1)],
        )
        result = validator.validate(graph)
        assert result.errors == ["T: output schema incompatible with B (output:1): id: expected string, got integer"]

    def test_transformation_chain_mismatch_reported_once(self, validator):
        graph = make_graph(
            transformations=[
                make_transformation(1, "T1", schema_in={}, schema_out={"a": "string"}),
                make_transformation(2, "T2", schema_in={"a": "integer"}, schema_out={}),
            ],
            flows=[make_flow(1, TR, 1, TR, 2)],
        )
        result = validator.validate(graph)
        assert result.errors == [
            "T2: input schema incompatible with T1 (transformation:1): a: expected integer, got string"
        ]


class TestWarnings:
    """Non-blocking findings."""

    def test_disconnected_nodes(self, validator):
        graph = make_graph(
            inputs=[make_input(1), make_input(2, name="Lonely", topic="t9")],
            outputs=[make_output(1)],
            flows=[make_flow(1, IN, 1, OUT, 1)],
        )
        result = validator.validate(graph)

        assert result.valid is True
        assert "Lonely: disconnected node (input:2)" in result.warnings
        assert "Flow 1: input connected directly to output, no processor will run" in result.warnings

    def test_shared_topics_per_role(self, validator):
        graph = make_graph(
            inputs=[make_input(1, name="A1", topic="orders"), make_input(2, name="A2", topic="orders")],
        )
        result = validator.validate(graph)
        assert "Inputs 'A1', 'A2' share topic 'orders' on broker 'memory://ext'" in result.warnings

    def test_same_topic_across_roles_is_fine(self, validator):
        graph = make_graph(
            inputs=[make_input(1, topic="x")],
            outputs=[make_output(1, topic="x")],
            flows=[make_flow(1, IN, 1, OUT, 1)],
        )
        assert not any("share topic" in w for w in validator.validate(graph).warnings)


class TestOrdering:
    """Topological ordering helpers."""

    def test_topological_order_is_deterministic(self):
        flows = [make_flow(1, TR, 3, TR, 1), make_flow(2, TR, 2, TR, 1)]
        assert topological_order(flows, [1, 2, 3]) == [2, 3, 1]

    def test_cycle_returns_none(self):
        flows = [make_flow(1, TR, 1, TR, 2), make_flow(2, TR, 2, TR, 1)]
        assert topological_order(flows, [1, 2]) is None
        assert find_transformation_cycle(flows) == [1, 2, 1]

    def test_acyclic_has_no_cycle(self):
        assert find_transformation_cycle([make_flow(1, TR, 1, TR, 2)]) == []
