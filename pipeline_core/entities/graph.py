"""
Materialized view of one pipeline's nodes and flows.
"""

from typing import Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, Field

from .flows import Flow
from .nodes import Input, NodeType, Output, Transformation
from .pipelines import Pipeline

Node = Union[Input, Output, Transformation]
NodeKey = Tuple[NodeType, int]


class PipelineGraph(BaseModel):
    """Snapshot of a pipeline graph taken inside a single store read."""
    pipeline: Pipeline
    inputs: List[Input] = Field(default_factory=list)
    outputs: List[Output] = Field(default_factory=list)
    transformations: List[Transformation] = Field(default_factory=list)
    flows: List[Flow] = Field(default_factory=list)

    @property
    def pipeline_id(self) -> int:
        return self.pipeline.pipeline_id

    def nodes(self) -> Dict[NodeKey, Node]:
        """All nodes keyed by (type, id), in creation order per type."""
        nodes: Dict[NodeKey, Node] = {}
        for node in self.inputs:
            nodes[(NodeType.INPUT, node.input_id)] = node
        for node in self.outputs:
            nodes[(NodeType.OUTPUT, node.output_id)] = node
        for node in self.transformations:
            nodes[(NodeType.TRANSFORMATION, node.transformation_id)] = node
        return nodes

    def get_node(self, node_type: NodeType, node_id: int) -> Optional[Node]:
        return self.nodes().get((node_type, node_id))


def node_id_of(node: Node) -> int:
    if isinstance(node, Input):
        return node.input_id
    if isinstance(node, Output):
        return node.output_id
    return node.transformation_id
