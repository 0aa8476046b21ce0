"""
YAML export/import of pipeline definitions through the graph store.
"""

import pytest
import yaml

from pipeline_core.entities import NodeType, TagCreate
from pipeline_core.services import InvalidInputError, export_pipeline, import_pipeline

SCRIPT = "def run(message):\n    message['seen'] = True\n    return message\n"


class TestExport:

    @pytest.mark.asyncio
    async def test_document_layout(self, store, builder):
        pipeline, *_ = await builder.linear(script=SCRIPT, schema_in={"id": "integer"})
        await store.add_tag(pipeline.pipeline_id, TagCreate(name="prod"))

        text = await export_pipeline(store, pipeline.pipeline_id)
        document = yaml.safe_load(text)

        assert list(document) == ["pipeline", "tags", "inputs", "outputs", "transformations", "flows"]
        assert document["tags"] == ["prod"]
        assert document["inputs"][0]["topic"] == "t1"
        assert document["transformations"][0]["schema_in"] == {"id": "integer"}
        assert document["transformations"][0]["python_script"] == SCRIPT
        assert document["flows"][1] == {"from": {"type": "transformation", "name": "T"},
                                        "to": {"type": "output", "name": "B"}}

    @pytest.mark.asyncio
    async def test_scripts_are_block_literals(self, store, builder):
        pipeline, *_ = await builder.linear(script=SCRIPT)
        text = await export_pipeline(store, pipeline.pipeline_id)
        assert "python_script: |" in text


class TestImport:

    @pytest.mark.asyncio
    async def test_roundtrip_recreates_graph(self, store, builder):
        pipeline, *_ = await builder.linear(script=SCRIPT)
        text = await export_pipeline(store, pipeline.pipeline_id)

        imported = await import_pipeline(store, text)
        original = await store.load_graph(pipeline.pipeline_id)
        copy = await store.load_graph(imported.pipeline_id)

        assert imported.pipeline_id != pipeline.pipeline_id
        assert [n.name for n in copy.transformations] == [n.name for n in original.transformations]
        assert len(copy.flows) == len(original.flows)
        first = copy.flows[0]
        assert copy.get_node(first.start_node_type, first.start_node).name == "A"

    @pytest.mark.asyncio
    async def test_collects_every_error(self, store):
        text = yaml.safe_dump({
            "pipeline": {"name": "broken"},
            "inputs": [
                {"name": "A", "description": "", "topic": "t1", "broker_address": "memory://ext"},
                {"name": "A", "description": "", "topic": "t2", "broker_address": "memory://ext"},
            ],
            "transformations": [{"name": "T"}],
            "flows": [{"from": {"type": "input", "name": "A"}, "to": {"type": "node", "name": "X"}}],
        })

        with pytest.raises(InvalidInputError) as exc_info:
            await import_pipeline(store, text)

        errors = exc_info.value.details
        assert "inputs[1]: duplicate name 'A'" in errors
        assert any(e.startswith("transformations[0].python_script") for e in errors)
        assert "flows[0].to: unknown node type 'node'" in errors
        assert await store.list_pipelines() == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "- just\n- a list\n", "pipeline: [unclosed"])
    async def test_rejects_malformed_documents(self, store, text):
        with pytest.raises(InvalidInputError):
            await import_pipeline(store, text)

    @pytest.mark.asyncio
    async def test_rejects_non_utf8_bytes(self, store):
        with pytest.raises(InvalidInputError, match="UTF-8"):
            await import_pipeline(store, b"\xff\xfe")

    @pytest.mark.asyncio
    async def test_accepts_utf8_bytes(self, store):
        text = yaml.safe_dump({"pipeline": {"name": "café"}}, allow_unicode=True)
        pipeline = await import_pipeline(store, text.encode("utf-8"))
        assert pipeline.name == "café"

    @pytest.mark.asyncio
    async def test_non_string_field_names(self, store):
        text = "pipeline:\n  name: keys\ninputs:\n  - 1: x\n"
        with pytest.raises(InvalidInputError) as exc_info:
            await import_pipeline(store, text)
        assert exc_info.value.details == ["inputs[0]: field names must be strings"]
        assert await store.list_pipelines() == []

    @pytest.mark.asyncio
    async def test_non_string_field_names_in_pipeline_section(self, store):
        with pytest.raises(InvalidInputError, match="Invalid pipeline section") as exc_info:
            await import_pipeline(store, "pipeline:\n  1: x\n")
        assert exc_info.value.details == ["pipeline: field names must be strings"]

    @pytest.mark.asyncio
    async def test_sections_must_be_lists(self, store):
        text = "pipeline:\n  name: shapes\ninputs: 5\nflows:\n  - from: {type: [input], name: A}\n    to: {type: output, name: B}\n"
        with pytest.raises(InvalidInputError) as exc_info:
            await import_pipeline(store, text)
        errors = exc_info.value.details
        assert "inputs: must be a list" in errors
        assert "flows[0].from: 'type' and 'name' must be strings" in errors

    @pytest.mark.asyncio
    async def test_write_failure_removes_partial_pipeline(self, store):
        text = yaml.safe_dump({
            "pipeline": {"name": "blank-script"},
            "transformations": [{"name": "T", "python_script": "   "}],
        })
        with pytest.raises(InvalidInputError, match="python_script must not be empty"):
            await import_pipeline(store, text)
        assert await store.list_pipelines() == []

    @pytest.mark.asyncio
    async def test_flow_types_survive(self, store):
        text = yaml.safe_dump({
            "pipeline": {"name": "direct"},
            "inputs": [{"name": "A", "description": "", "topic": "t1", "broker_address": "memory://ext"}],
            "outputs": [{"name": "B", "topic": "t2", "broker_address": "memory://ext"}],
            "flows": [{"from": {"type": "input", "name": "A"}, "to": {"type": "output", "name": "B"}}],
        })
        pipeline = await import_pipeline(store, text)
        flows = await store.list_flows(pipeline.pipeline_id)
        assert [(f.start_node_type, f.end_node_type) for f in flows] == [(NodeType.INPUT, NodeType.OUTPUT)]
