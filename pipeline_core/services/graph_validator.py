"""
Graph validator: structural and schema checks on a pipeline snapshot.
"""

import logging
from collections import defaultdict, deque
from typing import Dict, List, Optional, Set, Tuple

from ..entities import Flow, NodeType, PipelineGraph, ValidationResult
from ..entities.graph import Node, NodeKey
from ..utils.schema_utils import check_compatibility

logger = logging.getLogger(__name__)


def node_label(key: NodeKey, node: Optional[Node]) -> str:
    node_type, node_id = key
    if node is None:
        return f"{node_type.value}:{node_id}"
    return f"{node.name} ({node_type.value}:{node_id})"


class GraphValidator:
    """
    Decides whether a pipeline graph can be executed.

    Errors make the graph invalid; warnings are informational. The checks run
    in a fixed order so the same graph always yields the same messages.
    """

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    def validate(self, graph: PipelineGraph) -> ValidationResult:
        nodes = graph.nodes()
        errors: List[str] = []
        warnings: List[str] = []

        usable = self._check_flows(graph.flows, nodes, errors)
        self._check_cycles(usable, nodes, errors)
        self._check_contracts(graph, usable, nodes, errors, warnings)
        self._check_disconnected(graph, nodes, warnings)
        self._check_direct_flows(usable, warnings)
        self._check_shared_topics(graph, warnings)

        result = ValidationResult(
            valid=not errors,
            errors=errors,
            warnings=warnings,
            pipeline_name=graph.pipeline.name,
        )
        self.logger.info(
            f"Validated pipeline {graph.pipeline_id}: valid={result.valid}, "
            f"{len(errors)} errors, {len(warnings)} warnings"
        )
        return result

    def _check_flows(self, flows: List[Flow], nodes: Dict[NodeKey, Node],
                     errors: List[str]) -> List[Flow]:
        """Role and reference checks. Returns the flows usable by the later passes."""
        usable = []
        for flow in flows:
            ok = True
            if flow.start_node_type == NodeType.OUTPUT:
                errors.append(f"Flow {flow.flow_id}: output node cannot be a flow source")
                ok = False
            if flow.end_node_type == NodeType.INPUT:
                errors.append(f"Flow {flow.flow_id}: input node cannot be a flow target")
                ok = False
            for key in ((flow.start_node_type, flow.start_node), (flow.end_node_type, flow.end_node)):
                if key not in nodes:
                    errors.append(f"Flow {flow.flow_id}: {key[0].value}:{key[1]} does not exist")
                    ok = False
            if ok:
                usable.append(flow)
        return usable

    def _check_cycles(self, flows: List[Flow], nodes: Dict[NodeKey, Node],
                      errors: List[str]) -> None:
        cycle = find_transformation_cycle(flows)
        if cycle:
            path = " -> ".join(
                node_label((NodeType.TRANSFORMATION, tid), nodes.get((NodeType.TRANSFORMATION, tid)))
                for tid in cycle
            )
            errors.append(f"Cycle detected among transformations: {path}")

    def _check_contracts(self, graph: PipelineGraph, flows: List[Flow], nodes: Dict[NodeKey, Node],
                         errors: List[str], warnings: List[str]) -> None:
        """
        Compare each transformation's schemas against its neighbours.

        Mismatches on a transformation-to-transformation edge are reported once,
        on the input side of the downstream node.
        """
        for transformation in graph.transformations:
            key = (NodeType.TRANSFORMATION, transformation.transformation_id)
            upstream = [
                (flow.start_node_type, flow.start_node) for flow in flows
                if (flow.end_node_type, flow.end_node) == key
            ]
            downstream = [
                (flow.end_node_type, flow.end_node) for flow in flows
                if (flow.start_node_type, flow.start_node) == key
            ]

            if upstream:
                schemas = [_produced_schema(nodes[source]) for source in upstream]
                if transformation.schema_in is None or any(schema is None for schema in schemas):
                    warnings.append(f"{transformation.name}: unchecked contract on input")
                if transformation.schema_in is not None:
                    for source, schema in zip(upstream, schemas):
                        if schema is None:
                            continue
                        for mismatch in check_compatibility(schema, transformation.schema_in):
                            errors.append(
                                f"{transformation.name}: input schema incompatible with "
                                f"{node_label(source, nodes[source])}: {mismatch}"
                            )

            if downstream:
                schemas = [_expected_schema(nodes[target]) for target in downstream]
                if transformation.schema_out is None or any(schema is None for schema in schemas):
                    warnings.append(f"{transformation.name}: unchecked contract on output")
                if transformation.schema_out is not None:
                    for target, schema in zip(downstream, schemas):
                        if schema is None or target[0] != NodeType.OUTPUT:
                            continue
                        for mismatch in check_compatibility(transformation.schema_out, schema):
                            errors.append(
                                f"{transformation.name}: output schema incompatible with "
                                f"{node_label(target, nodes[target])}: {mismatch}"
                            )

    def _check_disconnected(self, graph: PipelineGraph, nodes: Dict[NodeKey, Node],
                            warnings: List[str]) -> None:
        touched: Set[NodeKey] = set()
        for flow in graph.flows:
            touched.add((flow.start_node_type, flow.start_node))
            touched.add((flow.end_node_type, flow.end_node))
        for key, node in nodes.items():
            if key not in touched:
                warnings.append(f"{node.name}: disconnected node ({key[0].value}:{key[1]})")

    def _check_direct_flows(self, flows: List[Flow], warnings: List[str]) -> None:
        for flow in flows:
            if flow.start_node_type == NodeType.INPUT and flow.end_node_type == NodeType.OUTPUT:
                warnings.append(
                    f"Flow {flow.flow_id}: input connected directly to output, no processor will run"
                )

    def _check_shared_topics(self, graph: PipelineGraph, warnings: List[str]) -> None:
        for role, members in (("Inputs", graph.inputs), ("Outputs", graph.outputs)):
            seen: Dict[Tuple[str, str], List[str]] = defaultdict(list)
            for node in members:
                seen[(node.broker_address, node.topic)].append(node.name)
            for (address, topic), names in seen.items():
                if len(names) > 1:
                    joined = ", ".join(f"'{name}'" for name in names)
                    warnings.append(f"{role} {joined} share topic '{topic}' on broker '{address}'")


def _produced_schema(node: Node):
    """Schema of the messages a node emits."""
    if hasattr(node, "schema_out"):
        return node.schema_out
    return getattr(node, "schemas", None)


def _expected_schema(node: Node):
    """Schema a node expects to receive."""
    if hasattr(node, "schema_in"):
        return node.schema_in
    return getattr(node, "schemas", None)


def transformation_edges(flows: List[Flow]) -> Dict[int, List[int]]:
    edges: Dict[int, List[int]] = defaultdict(list)
    for flow in flows:
        if flow.start_node_type == NodeType.TRANSFORMATION and flow.end_node_type == NodeType.TRANSFORMATION:
            edges[flow.start_node].append(flow.end_node)
    return edges


def topological_order(flows: List[Flow], transformation_ids: List[int]) -> Optional[List[int]]:
    """
    Kahn's algorithm over transformation-to-transformation edges.

    Returns None when a cycle prevents a complete order. Ties are broken by id
    so the order is deterministic.
    """
    edges = transformation_edges(flows)
    in_degree = {tid: 0 for tid in transformation_ids}
    for source, targets in edges.items():
        in_degree.setdefault(source, 0)
        for target in targets:
            in_degree[target] = in_degree.get(target, 0) + 1

    ready = deque(sorted(tid for tid, degree in in_degree.items() if degree == 0))
    order: List[int] = []
    while ready:
        current = ready.popleft()
        order.append(current)
        released = []
        for target in edges.get(current, []):
            in_degree[target] -= 1
            if in_degree[target] == 0:
                released.append(target)
        ready.extend(sorted(released))

    if len(order) != len(in_degree):
        return None
    return order


def find_transformation_cycle(flows: List[Flow]) -> List[int]:
    """Return one cycle as a closed path of transformation ids, or [] when acyclic."""
    edges = transformation_edges(flows)
    nodes = sorted(set(edges) | {t for targets in edges.values() for t in targets})
    if topological_order(flows, nodes) is not None:
        return []

    visited: Set[int] = set()
    stack: List[int] = []
    on_stack: Set[int] = set()

    def dfs(current: int) -> List[int]:
        visited.add(current)
        stack.append(current)
        on_stack.add(current)
        for target in sorted(edges.get(current, [])):
            if target in on_stack:
                start = stack.index(target)
                return stack[start:] + [target]
            if target not in visited:
                found = dfs(target)
                if found:
                    return found
        stack.pop()
        on_stack.discard(current)
        return []

    for node in nodes:
        if node not in visited:
            cycle = dfs(node)
            if cycle:
                return cycle
    return []
