"""
Graph store: CRUD for pipelines, nodes, flows and tags.

All mutations run inside a single database transaction and, per pipeline,
under an asyncio lock so structural changes to one pipeline are serialized
while unrelated pipelines proceed concurrently.
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple, Type

from pydantic import BaseModel

from ..config import Settings, settings as default_settings
from ..entities import (
    Flow,
    FlowCreate,
    FlowUpdate,
    Input,
    InputCreate,
    InputUpdate,
    NodeType,
    Output,
    OutputCreate,
    OutputUpdate,
    Pipeline,
    PipelineCreate,
    PipelineGraph,
    PipelineUpdate,
    Tag,
    TagCreate,
    Transformation,
    TransformationCreate,
    TransformationUpdate,
)
from ..utils import json_or_null, safe_json_loads, utc_now_iso
from .base_service import BaseService, ConflictError, InvalidInputError, NotFoundError


@dataclass(frozen=True)
class NodeTable:
    """Storage layout of one node type."""
    node_type: NodeType
    table: str
    id_column: str
    model: Type[BaseModel]
    columns: Tuple[str, ...]
    json_columns: Tuple[str, ...]

    @property
    def label(self) -> str:
        return self.node_type.value.capitalize()


NODE_TABLES: Dict[NodeType, NodeTable] = {
    NodeType.INPUT: NodeTable(
        NodeType.INPUT, "inputs", "input_id", Input,
        ("name", "description", "topic", "schemas", "broker_address"), ("schemas",),
    ),
    NodeType.OUTPUT: NodeTable(
        NodeType.OUTPUT, "outputs", "output_id", Output,
        ("name", "description", "topic", "schemas", "broker_address"), ("schemas",),
    ),
    NodeType.TRANSFORMATION: NodeTable(
        NodeType.TRANSFORMATION, "transformations", "transformation_id", Transformation,
        ("name", "description", "schema_in", "schema_out", "python_script"), ("schema_in", "schema_out"),
    ),
}

FLOW_COLUMNS = ("start_node_type", "end_node_type", "start_node", "end_node")


class GraphStore(BaseService):
    """
    Holds pipelines and their graphs, enforcing referential and uniqueness
    invariants on every mutation.
    """

    def __init__(self, db_provider, settings: Optional[Settings] = None):
        super().__init__(db_provider)
        self.settings = settings or default_settings
        self._locks: Dict[int, asyncio.Lock] = {}
        self._is_active: Callable[[int], bool] = lambda pipeline_id: False

    def set_lifecycle_guard(self, is_active: Callable[[int], bool]) -> None:
        """
        Register the predicate telling whether a pipeline is out of Idle.

        Deleting nodes (or the whole pipeline) is rejected while it returns True.
        """
        self._is_active = is_active

    @asynccontextmanager
    async def _mutation(self, pipeline_id: Optional[int] = None):
        """Serialize per pipeline and open a transaction."""
        if pipeline_id is None:
            async with self.db.transaction() as tx:
                yield tx
            return
        lock = self._locks.setdefault(pipeline_id, asyncio.Lock())
        async with lock:
            async with self.db.transaction() as tx:
                yield tx

    def _check_page(self, skip: int, limit: int) -> None:
        if skip < 0:
            raise InvalidInputError("skip must be greater than or equal to 0", {"skip": skip})
        if limit < 1 or limit > self.settings.MAX_LIMIT:
            raise InvalidInputError(
                f"limit must be between 1 and {self.settings.MAX_LIMIT}", {"limit": limit}
            )

    def _reject_if_active(self, pipeline_id: int, action: str) -> None:
        if self._is_active(pipeline_id):
            raise ConflictError(
                f"Cannot {action} while pipeline {pipeline_id} is active; stop it first",
                {"pipeline_id": pipeline_id},
            )

    # ------------------------------------------------------------------
    # Pipelines
    # ------------------------------------------------------------------

    async def _require_pipeline(self, tx, pipeline_id: int) -> Dict[str, Any]:
        row = await tx.fetch_one("SELECT * FROM pipelines WHERE pipeline_id = ?", pipeline_id)
        if not row:
            raise NotFoundError(f"Pipeline {pipeline_id} not found", {"pipeline_id": pipeline_id})
        return row

    async def create_pipeline(self, data: PipelineCreate) -> Pipeline:
        async with self._mutation() as tx:
            pipeline_id = await tx.execute(
                "INSERT INTO pipelines (name, description, created_at) VALUES (?, ?, ?)",
                data.name, data.description, utc_now_iso(),
            )
            row = await self._require_pipeline(tx, pipeline_id)
        self.logger.info(f"Created pipeline {pipeline_id} ({data.name})")
        return Pipeline(**row)

    async def list_pipelines(self, skip: int = 0, limit: int = 100) -> List[Pipeline]:
        self._check_page(skip, limit)
        rows = await self._fetch_all(
            "SELECT * FROM pipelines ORDER BY pipeline_id LIMIT ? OFFSET ?", (limit, skip)
        )
        return [Pipeline(**row) for row in rows]

    async def get_pipeline(self, pipeline_id: int) -> Pipeline:
        row = await self._fetch_one("SELECT * FROM pipelines WHERE pipeline_id = ?", (pipeline_id,))
        if not row:
            raise NotFoundError(f"Pipeline {pipeline_id} not found", {"pipeline_id": pipeline_id})
        return Pipeline(**row)

    async def update_pipeline(self, pipeline_id: int, data: PipelineUpdate) -> Pipeline:
        changes = data.changes()
        async with self._mutation(pipeline_id) as tx:
            await self._require_pipeline(tx, pipeline_id)
            if changes:
                await self._apply_update(tx, "pipelines", "pipeline_id", pipeline_id, changes)
            row = await self._require_pipeline(tx, pipeline_id)
        return Pipeline(**row)

    async def delete_pipeline(self, pipeline_id: int) -> None:
        """Delete a pipeline together with its nodes, flows and tag links."""
        async with self._mutation(pipeline_id) as tx:
            await self._require_pipeline(tx, pipeline_id)
            self._reject_if_active(pipeline_id, "delete the pipeline")
            await tx.execute("DELETE FROM flows WHERE pipeline_id = ?", pipeline_id)
            for layout in NODE_TABLES.values():
                await tx.execute(f"DELETE FROM {layout.table} WHERE pipeline_id = ?", pipeline_id)
            tag_rows = await tx.fetch_all(
                "SELECT tag_id FROM pipeline_tags WHERE pipeline_id = ?", pipeline_id
            )
            await tx.execute("DELETE FROM pipeline_tags WHERE pipeline_id = ?", pipeline_id)
            for tag_row in tag_rows:
                await self._drop_orphan_tag(tx, tag_row["tag_id"])
            await tx.execute("DELETE FROM pipelines WHERE pipeline_id = ?", pipeline_id)
        self._locks.pop(pipeline_id, None)
        self.logger.info(f"Deleted pipeline {pipeline_id}")

    # ------------------------------------------------------------------
    # Nodes (generic)
    # ------------------------------------------------------------------

    def _node_from_row(self, layout: NodeTable, row: Dict[str, Any]) -> BaseModel:
        data = dict(row)
        for column in layout.json_columns:
            data[column] = safe_json_loads(data.get(column))
        return layout.model(**data)

    async def _require_node(self, tx, layout: NodeTable, pipeline_id: int, node_id: int) -> Dict[str, Any]:
        row = await tx.fetch_one(
            f"SELECT * FROM {layout.table} WHERE {layout.id_column} = ? AND pipeline_id = ?",
            node_id, pipeline_id,
        )
        if not row:
            raise NotFoundError(
                f"{layout.label} {node_id} not found in pipeline {pipeline_id}",
                {"pipeline_id": pipeline_id, layout.id_column: node_id},
            )
        return row

    async def _check_node_name(self, tx, layout: NodeTable, pipeline_id: int, name: str,
                               exclude_id: Optional[int] = None) -> None:
        existing = await tx.fetch_val(
            f"SELECT {layout.id_column} FROM {layout.table} WHERE pipeline_id = ? AND name = ?",
            pipeline_id, name,
        )
        if existing is not None and existing != exclude_id:
            raise ConflictError(
                f"{layout.label} named '{name}' already exists in pipeline {pipeline_id}",
                {"pipeline_id": pipeline_id, layout.id_column: existing},
            )

    async def _create_node(self, node_type: NodeType, pipeline_id: int, data: BaseModel) -> BaseModel:
        layout = NODE_TABLES[node_type]
        values = data.model_dump(mode="json")
        async with self._mutation(pipeline_id) as tx:
            await self._require_pipeline(tx, pipeline_id)
            await self._check_node_name(tx, layout, pipeline_id, values["name"])
            params = [
                json_or_null(values.get(column)) if column in layout.json_columns else values.get(column)
                for column in layout.columns
            ]
            placeholders = ", ".join("?" for _ in range(len(layout.columns) + 2))
            node_id = await tx.execute(
                f"INSERT INTO {layout.table} (pipeline_id, {', '.join(layout.columns)}, created_at) "
                f"VALUES ({placeholders})",
                pipeline_id, *params, utc_now_iso(),
            )
            row = await self._require_node(tx, layout, pipeline_id, node_id)
        self.logger.info(f"Created {node_type.value} {node_id} in pipeline {pipeline_id}")
        return self._node_from_row(layout, row)

    async def _list_nodes(self, node_type: NodeType, pipeline_id: int,
                          skip: int = 0, limit: int = 100) -> List[BaseModel]:
        self._check_page(skip, limit)
        layout = NODE_TABLES[node_type]
        await self.get_pipeline(pipeline_id)
        rows = await self._fetch_all(
            f"SELECT * FROM {layout.table} WHERE pipeline_id = ? ORDER BY {layout.id_column} LIMIT ? OFFSET ?",
            (pipeline_id, limit, skip),
        )
        return [self._node_from_row(layout, row) for row in rows]

    async def _get_node(self, node_type: NodeType, pipeline_id: int, node_id: int) -> BaseModel:
        layout = NODE_TABLES[node_type]
        await self.get_pipeline(pipeline_id)
        row = await self._fetch_one(
            f"SELECT * FROM {layout.table} WHERE {layout.id_column} = ? AND pipeline_id = ?",
            (node_id, pipeline_id),
        )
        if not row:
            raise NotFoundError(
                f"{layout.label} {node_id} not found in pipeline {pipeline_id}",
                {"pipeline_id": pipeline_id, layout.id_column: node_id},
            )
        return self._node_from_row(layout, row)

    async def _update_node(self, node_type: NodeType, pipeline_id: int, node_id: int,
                           data: BaseModel) -> BaseModel:
        layout = NODE_TABLES[node_type]
        changes = data.changes()
        for column in layout.json_columns:
            if column in changes:
                changes[column] = json_or_null(changes[column])
        async with self._mutation(pipeline_id) as tx:
            await self._require_pipeline(tx, pipeline_id)
            await self._require_node(tx, layout, pipeline_id, node_id)
            if "name" in changes:
                await self._check_node_name(tx, layout, pipeline_id, changes["name"], exclude_id=node_id)
            if changes:
                await self._apply_update(tx, layout.table, layout.id_column, node_id, changes)
            row = await self._require_node(tx, layout, pipeline_id, node_id)
        return self._node_from_row(layout, row)

    async def _delete_node(self, node_type: NodeType, pipeline_id: int, node_id: int) -> None:
        """Delete a node and every flow touching it."""
        layout = NODE_TABLES[node_type]
        async with self._mutation(pipeline_id) as tx:
            await self._require_pipeline(tx, pipeline_id)
            await self._require_node(tx, layout, pipeline_id, node_id)
            self._reject_if_active(pipeline_id, f"delete {node_type.value} {node_id}")
            await tx.execute(
                "DELETE FROM flows WHERE pipeline_id = ? AND "
                "((start_node_type = ? AND start_node = ?) OR (end_node_type = ? AND end_node = ?))",
                pipeline_id, node_type.value, node_id, node_type.value, node_id,
            )
            await tx.execute(f"DELETE FROM {layout.table} WHERE {layout.id_column} = ?", node_id)
        self.logger.info(f"Deleted {node_type.value} {node_id} from pipeline {pipeline_id}")

    async def _apply_update(self, tx, table: str, id_column: str, row_id: int,
                            changes: Dict[str, Any]) -> None:
        assignments = ", ".join(f"{column} = ?" for column in changes)
        await tx.execute(
            f"UPDATE {table} SET {assignments}, updated_at = ? WHERE {id_column} = ?",
            *changes.values(), utc_now_iso(), row_id,
        )

    # Inputs

    async def create_input(self, pipeline_id: int, data: InputCreate) -> Input:
        return await self._create_node(NodeType.INPUT, pipeline_id, data)

    async def list_inputs(self, pipeline_id: int, skip: int = 0, limit: int = 100) -> List[Input]:
        return await self._list_nodes(NodeType.INPUT, pipeline_id, skip, limit)

    async def get_input(self, pipeline_id: int, input_id: int) -> Input:
        return await self._get_node(NodeType.INPUT, pipeline_id, input_id)

    async def update_input(self, pipeline_id: int, input_id: int, data: InputUpdate) -> Input:
        return await self._update_node(NodeType.INPUT, pipeline_id, input_id, data)

    async def delete_input(self, pipeline_id: int, input_id: int) -> None:
        await self._delete_node(NodeType.INPUT, pipeline_id, input_id)

    # Outputs

    async def create_output(self, pipeline_id: int, data: OutputCreate) -> Output:
        return await self._create_node(NodeType.OUTPUT, pipeline_id, data)

    async def list_outputs(self, pipeline_id: int, skip: int = 0, limit: int = 100) -> List[Output]:
        return await self._list_nodes(NodeType.OUTPUT, pipeline_id, skip, limit)

    async def get_output(self, pipeline_id: int, output_id: int) -> Output:
        return await self._get_node(NodeType.OUTPUT, pipeline_id, output_id)

    async def update_output(self, pipeline_id: int, output_id: int, data: OutputUpdate) -> Output:
        return await self._update_node(NodeType.OUTPUT, pipeline_id, output_id, data)

    async def delete_output(self, pipeline_id: int, output_id: int) -> None:
        await self._delete_node(NodeType.OUTPUT, pipeline_id, output_id)

    # Transformations

    async def create_transformation(self, pipeline_id: int, data: TransformationCreate) -> Transformation:
        if not data.python_script.strip():
            raise InvalidInputError("python_script must not be empty")
        return await self._create_node(NodeType.TRANSFORMATION, pipeline_id, data)

    async def list_transformations(self, pipeline_id: int, skip: int = 0,
                                   limit: int = 100) -> List[Transformation]:
        return await self._list_nodes(NodeType.TRANSFORMATION, pipeline_id, skip, limit)

    async def get_transformation(self, pipeline_id: int, transformation_id: int) -> Transformation:
        return await self._get_node(NodeType.TRANSFORMATION, pipeline_id, transformation_id)

    async def update_transformation(self, pipeline_id: int, transformation_id: int,
                                    data: TransformationUpdate) -> Transformation:
        if data.python_script is not None and not data.python_script.strip():
            raise InvalidInputError("python_script must not be empty")
        return await self._update_node(NodeType.TRANSFORMATION, pipeline_id, transformation_id, data)

    async def delete_transformation(self, pipeline_id: int, transformation_id: int) -> None:
        await self._delete_node(NodeType.TRANSFORMATION, pipeline_id, transformation_id)

    # ------------------------------------------------------------------
    # Flows
    # ------------------------------------------------------------------

    def _flow_from_row(self, row: Dict[str, Any]) -> Flow:
        return Flow(**row)

    async def _require_flow(self, tx, pipeline_id: int, flow_id: int) -> Dict[str, Any]:
        row = await tx.fetch_one(
            "SELECT * FROM flows WHERE flow_id = ? AND pipeline_id = ?", flow_id, pipeline_id
        )
        if not row:
            raise NotFoundError(
                f"Flow {flow_id} not found in pipeline {pipeline_id}",
                {"pipeline_id": pipeline_id, "flow_id": flow_id},
            )
        return row

    async def _check_flow_endpoints(self, tx, pipeline_id: int, values: Dict[str, Any],
                                    exclude_id: Optional[int] = None) -> None:
        """Both endpoints must exist in this pipeline; the same edge may not be declared twice."""
        for type_key, id_key in (("start_node_type", "start_node"), ("end_node_type", "end_node")):
            layout = NODE_TABLES[NodeType(values[type_key])]
            found = await tx.fetch_val(
                f"SELECT {layout.id_column} FROM {layout.table} WHERE {layout.id_column} = ? AND pipeline_id = ?",
                values[id_key], pipeline_id,
            )
            if found is None:
                raise NotFoundError(
                    f"{layout.label} {values[id_key]} not found in pipeline {pipeline_id}",
                    {"pipeline_id": pipeline_id, id_key: values[id_key], type_key: layout.node_type.value},
                )
        duplicate = await tx.fetch_val(
            "SELECT flow_id FROM flows WHERE pipeline_id = ? AND start_node_type = ? AND start_node = ? "
            "AND end_node_type = ? AND end_node = ?",
            pipeline_id, values["start_node_type"], values["start_node"],
            values["end_node_type"], values["end_node"],
        )
        if duplicate is not None and duplicate != exclude_id:
            raise ConflictError(
                f"Flow {duplicate} already connects these nodes",
                {"pipeline_id": pipeline_id, "flow_id": duplicate},
            )

    async def create_flow(self, pipeline_id: int, data: FlowCreate) -> Flow:
        values = data.model_dump(mode="json")
        async with self._mutation(pipeline_id) as tx:
            await self._require_pipeline(tx, pipeline_id)
            await self._check_flow_endpoints(tx, pipeline_id, values)
            flow_id = await tx.execute(
                f"INSERT INTO flows (pipeline_id, {', '.join(FLOW_COLUMNS)}, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                pipeline_id, *(values[column] for column in FLOW_COLUMNS), utc_now_iso(),
            )
            row = await self._require_flow(tx, pipeline_id, flow_id)
        self.logger.info(
            f"Created flow {flow_id} in pipeline {pipeline_id}: "
            f"{values['start_node_type']}:{values['start_node']} -> {values['end_node_type']}:{values['end_node']}"
        )
        return self._flow_from_row(row)

    async def list_flows(self, pipeline_id: int, skip: int = 0, limit: int = 100) -> List[Flow]:
        self._check_page(skip, limit)
        await self.get_pipeline(pipeline_id)
        rows = await self._fetch_all(
            "SELECT * FROM flows WHERE pipeline_id = ? ORDER BY flow_id LIMIT ? OFFSET ?",
            (pipeline_id, limit, skip),
        )
        return [self._flow_from_row(row) for row in rows]

    async def get_flow(self, pipeline_id: int, flow_id: int) -> Flow:
        await self.get_pipeline(pipeline_id)
        row = await self._fetch_one(
            "SELECT * FROM flows WHERE flow_id = ? AND pipeline_id = ?", (flow_id, pipeline_id)
        )
        if not row:
            raise NotFoundError(
                f"Flow {flow_id} not found in pipeline {pipeline_id}",
                {"pipeline_id": pipeline_id, "flow_id": flow_id},
            )
        return self._flow_from_row(row)

    async def update_flow(self, pipeline_id: int, flow_id: int, data: FlowUpdate) -> Flow:
        changes = data.changes()
        async with self._mutation(pipeline_id) as tx:
            await self._require_pipeline(tx, pipeline_id)
            current = await self._require_flow(tx, pipeline_id, flow_id)
            if changes:
                merged = {column: changes.get(column, current[column]) for column in FLOW_COLUMNS}
                await self._check_flow_endpoints(tx, pipeline_id, merged, exclude_id=flow_id)
                await self._apply_update(tx, "flows", "flow_id", flow_id, changes)
            row = await self._require_flow(tx, pipeline_id, flow_id)
        return self._flow_from_row(row)

    async def delete_flow(self, pipeline_id: int, flow_id: int) -> None:
        async with self._mutation(pipeline_id) as tx:
            await self._require_pipeline(tx, pipeline_id)
            await self._require_flow(tx, pipeline_id, flow_id)
            await tx.execute("DELETE FROM flows WHERE flow_id = ?", flow_id)
        self.logger.info(f"Deleted flow {flow_id} from pipeline {pipeline_id}")

    # ------------------------------------------------------------------
    # Tags
    # ------------------------------------------------------------------

    async def _drop_orphan_tag(self, tx, tag_id: int) -> None:
        remaining = await tx.fetch_val("SELECT COUNT(*) FROM pipeline_tags WHERE tag_id = ?", tag_id)
        if not remaining:
            await tx.execute("DELETE FROM tags WHERE tag_id = ?", tag_id)

    async def add_tag(self, pipeline_id: int, data: TagCreate) -> Tag:
        """Attach a tag by name, creating it when no pipeline uses that name yet."""
        async with self._mutation(pipeline_id) as tx:
            await self._require_pipeline(tx, pipeline_id)
            row = await tx.fetch_one("SELECT * FROM tags WHERE name = ?", data.name)
            if row:
                tag_id = row["tag_id"]
                linked = await tx.fetch_val(
                    "SELECT tag_id FROM pipeline_tags WHERE pipeline_id = ? AND tag_id = ?",
                    pipeline_id, tag_id,
                )
                if linked is not None:
                    raise ConflictError(
                        f"Tag '{data.name}' is already attached to pipeline {pipeline_id}",
                        {"pipeline_id": pipeline_id, "tag_id": tag_id},
                    )
            else:
                tag_id = await tx.execute(
                    "INSERT INTO tags (name, created_at) VALUES (?, ?)", data.name, utc_now_iso()
                )
                row = await tx.fetch_one("SELECT * FROM tags WHERE tag_id = ?", tag_id)
            await tx.execute(
                "INSERT INTO pipeline_tags (pipeline_id, tag_id, created_at) VALUES (?, ?, ?)",
                pipeline_id, tag_id, utc_now_iso(),
            )
        return Tag(**row)

    async def list_tags(self, pipeline_id: int, skip: int = 0, limit: int = 100) -> List[Tag]:
        self._check_page(skip, limit)
        await self.get_pipeline(pipeline_id)
        rows = await self._fetch_all(
            "SELECT t.* FROM tags t JOIN pipeline_tags pt ON pt.tag_id = t.tag_id "
            "WHERE pt.pipeline_id = ? ORDER BY t.tag_id LIMIT ? OFFSET ?",
            (pipeline_id, limit, skip),
        )
        return [Tag(**row) for row in rows]

    async def get_tag(self, pipeline_id: int, tag_id: int) -> Tag:
        await self.get_pipeline(pipeline_id)
        row = await self._fetch_one(
            "SELECT t.* FROM tags t JOIN pipeline_tags pt ON pt.tag_id = t.tag_id "
            "WHERE pt.pipeline_id = ? AND t.tag_id = ?",
            (pipeline_id, tag_id),
        )
        if not row:
            raise NotFoundError(
                f"Tag {tag_id} not found in pipeline {pipeline_id}",
                {"pipeline_id": pipeline_id, "tag_id": tag_id},
            )
        return Tag(**row)

    async def remove_tag(self, pipeline_id: int, tag_id: int) -> None:
        """Detach a tag; the tag itself is deleted once no pipeline references it."""
        async with self._mutation(pipeline_id) as tx:
            await self._require_pipeline(tx, pipeline_id)
            linked = await tx.fetch_val(
                "SELECT tag_id FROM pipeline_tags WHERE pipeline_id = ? AND tag_id = ?",
                pipeline_id, tag_id,
            )
            if linked is None:
                raise NotFoundError(
                    f"Tag {tag_id} not found in pipeline {pipeline_id}",
                    {"pipeline_id": pipeline_id, "tag_id": tag_id},
                )
            await tx.execute(
                "DELETE FROM pipeline_tags WHERE pipeline_id = ? AND tag_id = ?", pipeline_id, tag_id
            )
            await self._drop_orphan_tag(tx, tag_id)

    # ------------------------------------------------------------------
    # Graph snapshot
    # ------------------------------------------------------------------

    async def load_graph(self, pipeline_id: int) -> PipelineGraph:
        """Read the pipeline, all of its nodes and all of its flows in one transaction."""
        async with self.db.transaction() as tx:
            pipeline_row = await self._require_pipeline(tx, pipeline_id)
            nodes: Dict[NodeType, List[BaseModel]] = {}
            for node_type, layout in NODE_TABLES.items():
                rows = await tx.fetch_all(
                    f"SELECT * FROM {layout.table} WHERE pipeline_id = ? ORDER BY {layout.id_column}",
                    pipeline_id,
                )
                nodes[node_type] = [self._node_from_row(layout, row) for row in rows]
            flow_rows = await tx.fetch_all(
                "SELECT * FROM flows WHERE pipeline_id = ? ORDER BY flow_id", pipeline_id
            )
        return PipelineGraph(
            pipeline=Pipeline(**pipeline_row),
            inputs=nodes[NodeType.INPUT],
            outputs=nodes[NodeType.OUTPUT],
            transformations=nodes[NodeType.TRANSFORMATION],
            flows=[self._flow_from_row(row) for row in flow_rows],
        )
