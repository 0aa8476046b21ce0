"""
YAML import/export of whole pipeline definitions.

Flows reference their endpoints by node type and name so a document can be
moved between databases where ids differ.
"""

import logging
from typing import Any, Dict, List, Tuple, Union

import yaml
from pydantic import ValidationError

from ..entities import (
    FlowCreate,
    InputCreate,
    NodeType,
    OutputCreate,
    Pipeline,
    PipelineCreate,
    TagCreate,
    TransformationCreate,
)
from .base_service import InvalidInputError, ServiceError
from .graph_store import GraphStore

logger = logging.getLogger(__name__)

NODE_SECTIONS = (
    ("inputs", NodeType.INPUT, InputCreate),
    ("outputs", NodeType.OUTPUT, OutputCreate),
    ("transformations", NodeType.TRANSFORMATION, TransformationCreate),
)


class _BlockStyleDumper(yaml.SafeDumper):
    """Safe dumper writing multi-line strings (scripts) as literal blocks."""


def _represent_str(dumper: yaml.SafeDumper, data: str):
    if "\n" in data:
        return dumper.represent_scalar("tag:yaml.org,2002:str", data, style="|")
    return dumper.represent_scalar("tag:yaml.org,2002:str", data)


_BlockStyleDumper.add_representer(str, _represent_str)


def _format_validation_error(error: ValidationError, section: str) -> List[str]:
    return [
        f"{section}.{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
        for err in error.errors()
    ]


async def export_pipeline(store: GraphStore, pipeline_id: int) -> str:
    """Serialize a pipeline, its nodes, flows and tags to YAML."""
    graph = await store.load_graph(pipeline_id)
    tags = await store.list_tags(pipeline_id, limit=store.settings.MAX_LIMIT)
    names = {key: node.name for key, node in graph.nodes().items()}

    document: Dict[str, Any] = {
        "pipeline": {"name": graph.pipeline.name, "description": graph.pipeline.description},
        "tags": [tag.name for tag in tags],
        "inputs": [
            node.model_dump(include={"name", "description", "topic", "schemas", "broker_address"})
            for node in graph.inputs
        ],
        "outputs": [
            node.model_dump(include={"name", "description", "topic", "schemas", "broker_address"})
            for node in graph.outputs
        ],
        "transformations": [
            node.model_dump(include={"name", "description", "schema_in", "schema_out", "python_script"})
            for node in graph.transformations
        ],
        "flows": [
            {
                "from": {"type": flow.start_node_type.value,
                         "name": names.get((flow.start_node_type, flow.start_node))},
                "to": {"type": flow.end_node_type.value,
                       "name": names.get((flow.end_node_type, flow.end_node))},
            }
            for flow in graph.flows
        ],
    }
    return yaml.dump(document, Dumper=_BlockStyleDumper, sort_keys=False, default_flow_style=False)


def _parse_document(text: Union[str, bytes]) -> Dict[str, Any]:
    if isinstance(text, bytes):
        try:
            text = text.decode("utf-8")
        except UnicodeDecodeError as e:
            raise InvalidInputError(f"Pipeline YAML must be UTF-8 encoded: {e.reason} at byte {e.start}")
    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise InvalidInputError(f"Invalid pipeline YAML: {e}")
    if not isinstance(document, dict) or not isinstance(document.get("pipeline"), dict):
        raise InvalidInputError("Pipeline YAML must be a mapping with a 'pipeline' section")
    return document


def _section(document: Dict[str, Any], name: str, errors: List[str]) -> List[Any]:
    items = document.get(name) or []
    if not isinstance(items, list):
        errors.append(f"{name}: must be a list")
        return []
    return items


def _build(model, raw: Any, where: str, errors: List[str]):
    """Instantiate ``model`` from a YAML mapping, collecting errors instead of raising."""
    try:
        return model(**raw) if isinstance(raw, dict) else model()
    except ValidationError as e:
        errors.extend(_format_validation_error(e, where))
    except TypeError:
        errors.append(f"{where}: field names must be strings")
    return None


def _resolve_endpoint(ref: Any, known: Dict[Tuple[NodeType, str], int], where: str) -> Tuple[NodeType, str]:
    if not isinstance(ref, dict) or "type" not in ref or "name" not in ref:
        raise InvalidInputError(f"{where} must have 'type' and 'name'")
    if not isinstance(ref["type"], str) or not isinstance(ref["name"], str):
        raise InvalidInputError(f"{where}: 'type' and 'name' must be strings")
    try:
        node_type = NodeType(ref["type"])
    except ValueError:
        raise InvalidInputError(f"{where}: unknown node type '{ref['type']}'")
    if (node_type, ref["name"]) not in known:
        raise InvalidInputError(
            f"{where}: no {node_type.value} named '{ref['name']}'",
            {"type": node_type.value, "name": ref["name"]},
        )
    return node_type, ref["name"]


async def import_pipeline(store: GraphStore, text: Union[str, bytes]) -> Pipeline:
    """
    Create a pipeline from a YAML document produced by export_pipeline.

    The document is checked completely before anything is written; if a
    write still fails midway the partially created pipeline is removed.

    Raises:
        InvalidInputError: On undecodable or malformed YAML, invalid fields or
            unresolved node references
    """
    document = _parse_document(text)
    errors: List[str] = []

    pipeline_data = _build(PipelineCreate, document["pipeline"], "pipeline", errors)
    if pipeline_data is None:
        raise InvalidInputError("Invalid pipeline section", errors)

    nodes: Dict[NodeType, List[Any]] = {}
    known: Dict[Tuple[NodeType, str], int] = {}
    for section, node_type, model in NODE_SECTIONS:
        parsed = []
        for index, raw in enumerate(_section(document, section, errors)):
            item = _build(model, raw, f"{section}[{index}]", errors)
            if item is None:
                continue
            if (node_type, item.name) in known:
                errors.append(f"{section}[{index}]: duplicate name '{item.name}'")
                continue
            known[(node_type, item.name)] = 0
            parsed.append(item)
        nodes[node_type] = parsed

    flows = []
    for index, raw in enumerate(_section(document, "flows", errors)):
        if not isinstance(raw, dict):
            errors.append(f"flows[{index}]: must be a mapping")
            continue
        try:
            start = _resolve_endpoint(raw.get("from"), known, f"flows[{index}].from")
            end = _resolve_endpoint(raw.get("to"), known, f"flows[{index}].to")
        except InvalidInputError as e:
            errors.append(e.message)
            continue
        flows.append((start, end))

    tags = []
    for index, raw in enumerate(_section(document, "tags", errors)):
        try:
            tags.append(TagCreate(name=raw))
        except ValidationError as e:
            errors.extend(_format_validation_error(e, f"tags[{index}]"))

    if errors:
        raise InvalidInputError("Pipeline YAML has errors", errors)

    pipeline = await store.create_pipeline(pipeline_data)
    pipeline_id = pipeline.pipeline_id
    try:
        for item in nodes[NodeType.INPUT]:
            known[(NodeType.INPUT, item.name)] = (await store.create_input(pipeline_id, item)).input_id
        for item in nodes[NodeType.OUTPUT]:
            known[(NodeType.OUTPUT, item.name)] = (await store.create_output(pipeline_id, item)).output_id
        for item in nodes[NodeType.TRANSFORMATION]:
            created = await store.create_transformation(pipeline_id, item)
            known[(NodeType.TRANSFORMATION, item.name)] = created.transformation_id
        for start, end in flows:
            await store.create_flow(pipeline_id, FlowCreate(
                start_node_type=start[0],
                end_node_type=end[0],
                start_node=known[start],
                end_node=known[end],
            ))
        for tag in tags:
            await store.add_tag(pipeline_id, tag)
    except ServiceError:
        logger.warning(f"Import of pipeline '{pipeline_data.name}' failed, removing pipeline {pipeline_id}")
        await store.delete_pipeline(pipeline_id)
        raise

    logger.info(f"Imported pipeline {pipeline_id} ({pipeline.name})")
    return pipeline
