"""
HTTP routes for pipelines, their nodes, flows, tags and lifecycle actions.

The handlers are thin: every rule lives in the graph store and the
orchestrator, and every ServiceError is turned into ``{message, details?}``
by the handlers registered in ``create_app``.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status

from ..entities import (
    ExecutionResponse,
    Flow,
    FlowCreate,
    FlowUpdate,
    Input,
    InputCreate,
    InputUpdate,
    MessageResponse,
    Output,
    OutputCreate,
    OutputUpdate,
    Pipeline,
    PipelineCreate,
    PipelineUpdate,
    StatusResponse,
    Tag,
    TagCreate,
    Transformation,
    TransformationCreate,
    TransformationUpdate,
)
from ..services import GraphStore, PipelineOrchestrator
from ..services.pipeline_io import export_pipeline, import_pipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/pipeline", tags=["pipelines"])

YAML_MEDIA_TYPE = "application/x-yaml"


def get_store(request: Request) -> GraphStore:
    return request.app.state.store


def get_orchestrator(request: Request) -> PipelineOrchestrator:
    return request.app.state.orchestrator


def page_params(request: Request, skip: Optional[int] = Query(None), limit: Optional[int] = Query(None)):
    """Pagination query parameters with defaults from settings; range checks happen in the store."""
    settings = request.app.state.settings
    return (
        settings.DEFAULT_SKIP if skip is None else skip,
        settings.DEFAULT_LIMIT if limit is None else limit,
    )


# ============================================================================
# Pipelines
# ============================================================================

@router.get("", response_model=List[Pipeline])
async def list_pipelines(page=Depends(page_params), store: GraphStore = Depends(get_store)):
    skip, limit = page
    return await store.list_pipelines(skip=skip, limit=limit)


@router.post("", response_model=Pipeline, status_code=status.HTTP_201_CREATED)
async def create_pipeline(data: PipelineCreate, store: GraphStore = Depends(get_store)):
    return await store.create_pipeline(data)


@router.post("/import", response_model=Pipeline, status_code=status.HTTP_201_CREATED)
async def import_pipeline_definition(request: Request, store: GraphStore = Depends(get_store)):
    """Create a pipeline from a YAML document sent as the request body."""
    body = await request.body()
    return await import_pipeline(store, body)


@router.get("/{pipeline_id}", response_model=Pipeline)
async def get_pipeline(pipeline_id: int, store: GraphStore = Depends(get_store)):
    return await store.get_pipeline(pipeline_id)


@router.put("/{pipeline_id}", response_model=Pipeline)
async def update_pipeline(pipeline_id: int, data: PipelineUpdate, store: GraphStore = Depends(get_store)):
    return await store.update_pipeline(pipeline_id, data)


@router.delete("/{pipeline_id}", response_model=MessageResponse)
async def delete_pipeline(
    pipeline_id: int,
    store: GraphStore = Depends(get_store),
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
):
    await store.delete_pipeline(pipeline_id)
    orchestrator.forget(pipeline_id)
    return MessageResponse(message=f"Pipeline {pipeline_id} deleted")


@router.get("/{pipeline_id}/export")
async def export_pipeline_definition(pipeline_id: int, store: GraphStore = Depends(get_store)):
    content = await export_pipeline(store, pipeline_id)
    return Response(content=content, media_type=YAML_MEDIA_TYPE)


# ============================================================================
# Inputs
# ============================================================================

@router.get("/{pipeline_id}/input", response_model=List[Input])
async def list_inputs(pipeline_id: int, page=Depends(page_params), store: GraphStore = Depends(get_store)):
    skip, limit = page
    return await store.list_inputs(pipeline_id, skip=skip, limit=limit)


@router.post("/{pipeline_id}/input", response_model=Input, status_code=status.HTTP_201_CREATED)
async def create_input(pipeline_id: int, data: InputCreate, store: GraphStore = Depends(get_store)):
    return await store.create_input(pipeline_id, data)


@router.get("/{pipeline_id}/input/{input_id}", response_model=Input)
async def get_input(pipeline_id: int, input_id: int, store: GraphStore = Depends(get_store)):
    return await store.get_input(pipeline_id, input_id)


@router.put("/{pipeline_id}/input/{input_id}", response_model=Input)
async def update_input(pipeline_id: int, input_id: int, data: InputUpdate,
                       store: GraphStore = Depends(get_store)):
    return await store.update_input(pipeline_id, input_id, data)


@router.delete("/{pipeline_id}/input/{input_id}", response_model=MessageResponse)
async def delete_input(pipeline_id: int, input_id: int, store: GraphStore = Depends(get_store)):
    await store.delete_input(pipeline_id, input_id)
    return MessageResponse(message=f"Input {input_id} deleted")


# ============================================================================
# Outputs
# ============================================================================

@router.get("/{pipeline_id}/output", response_model=List[Output])
async def list_outputs(pipeline_id: int, page=Depends(page_params), store: GraphStore = Depends(get_store)):
    skip, limit = page
    return await store.list_outputs(pipeline_id, skip=skip, limit=limit)


@router.post("/{pipeline_id}/output", response_model=Output, status_code=status.HTTP_201_CREATED)
async def create_output(pipeline_id: int, data: OutputCreate, store: GraphStore = Depends(get_store)):
    return await store.create_output(pipeline_id, data)


@router.get("/{pipeline_id}/output/{output_id}", response_model=Output)
async def get_output(pipeline_id: int, output_id: int, store: GraphStore = Depends(get_store)):
    return await store.get_output(pipeline_id, output_id)


@router.put("/{pipeline_id}/output/{output_id}", response_model=Output)
async def update_output(pipeline_id: int, output_id: int, data: OutputUpdate,
                        store: GraphStore = Depends(get_store)):
    return await store.update_output(pipeline_id, output_id, data)


@router.delete("/{pipeline_id}/output/{output_id}", response_model=MessageResponse)
async def delete_output(pipeline_id: int, output_id: int, store: GraphStore = Depends(get_store)):
    await store.delete_output(pipeline_id, output_id)
    return MessageResponse(message=f"Output {output_id} deleted")


# ============================================================================
# Transformations
# ============================================================================

@router.get("/{pipeline_id}/transformation", response_model=List[Transformation])
async def list_transformations(pipeline_id: int, page=Depends(page_params),
                               store: GraphStore = Depends(get_store)):
    skip, limit = page
    return await store.list_transformations(pipeline_id, skip=skip, limit=limit)


@router.post("/{pipeline_id}/transformation", response_model=Transformation,
             status_code=status.HTTP_201_CREATED)
async def create_transformation(pipeline_id: int, data: TransformationCreate,
                                store: GraphStore = Depends(get_store)):
    return await store.create_transformation(pipeline_id, data)


@router.get("/{pipeline_id}/transformation/{transformation_id}", response_model=Transformation)
async def get_transformation(pipeline_id: int, transformation_id: int,
                             store: GraphStore = Depends(get_store)):
    return await store.get_transformation(pipeline_id, transformation_id)


@router.put("/{pipeline_id}/transformation/{transformation_id}", response_model=Transformation)
async def update_transformation(pipeline_id: int, transformation_id: int, data: TransformationUpdate,
                                store: GraphStore = Depends(get_store)):
    return await store.update_transformation(pipeline_id, transformation_id, data)


@router.delete("/{pipeline_id}/transformation/{transformation_id}", response_model=MessageResponse)
async def delete_transformation(pipeline_id: int, transformation_id: int,
                                store: GraphStore = Depends(get_store)):
    await store.delete_transformation(pipeline_id, transformation_id)
    return MessageResponse(message=f"Transformation {transformation_id} deleted")


# ============================================================================
# Flows
# ============================================================================

@router.get("/{pipeline_id}/flow", response_model=List[Flow])
async def list_flows(pipeline_id: int, page=Depends(page_params), store: GraphStore = Depends(get_store)):
    skip, limit = page
    return await store.list_flows(pipeline_id, skip=skip, limit=limit)


@router.post("/{pipeline_id}/flow", response_model=Flow, status_code=status.HTTP_201_CREATED)
async def create_flow(pipeline_id: int, data: FlowCreate, store: GraphStore = Depends(get_store)):
    return await store.create_flow(pipeline_id, data)


@router.get("/{pipeline_id}/flow/{flow_id}", response_model=Flow)
async def get_flow(pipeline_id: int, flow_id: int, store: GraphStore = Depends(get_store)):
    return await store.get_flow(pipeline_id, flow_id)


@router.put("/{pipeline_id}/flow/{flow_id}", response_model=Flow)
async def update_flow(pipeline_id: int, flow_id: int, data: FlowUpdate,
                      store: GraphStore = Depends(get_store)):
    return await store.update_flow(pipeline_id, flow_id, data)


@router.delete("/{pipeline_id}/flow/{flow_id}", response_model=MessageResponse)
async def delete_flow(pipeline_id: int, flow_id: int, store: GraphStore = Depends(get_store)):
    await store.delete_flow(pipeline_id, flow_id)
    return MessageResponse(message=f"Flow {flow_id} deleted")


# ============================================================================
# Tags
# ============================================================================

@router.get("/{pipeline_id}/tag", response_model=List[Tag])
async def list_tags(pipeline_id: int, page=Depends(page_params), store: GraphStore = Depends(get_store)):
    skip, limit = page
    return await store.list_tags(pipeline_id, skip=skip, limit=limit)


@router.post("/{pipeline_id}/tag", response_model=Tag, status_code=status.HTTP_201_CREATED)
async def add_tag(pipeline_id: int, data: TagCreate, store: GraphStore = Depends(get_store)):
    return await store.add_tag(pipeline_id, data)


@router.get("/{pipeline_id}/tag/{tag_id}", response_model=Tag)
async def get_tag(pipeline_id: int, tag_id: int, store: GraphStore = Depends(get_store)):
    return await store.get_tag(pipeline_id, tag_id)


@router.delete("/{pipeline_id}/tag/{tag_id}", response_model=MessageResponse)
async def remove_tag(pipeline_id: int, tag_id: int, store: GraphStore = Depends(get_store)):
    await store.remove_tag(pipeline_id, tag_id)
    return MessageResponse(message=f"Tag {tag_id} removed")


# ============================================================================
# Lifecycle actions
# ============================================================================

@router.post("/{pipeline_id}/validate", response_model=ExecutionResponse)
async def validate_pipeline(pipeline_id: int,
                            orchestrator: PipelineOrchestrator = Depends(get_orchestrator)):
    result = await orchestrator.validate(pipeline_id)
    if result.valid:
        message = "Pipeline is valid"
        if result.warnings:
            message += f" with {len(result.warnings)} warning(s): " + "; ".join(result.warnings)
    else:
        message = "Pipeline is invalid: " + "; ".join(result.errors)
    return ExecutionResponse(
        message=message,
        pipeline_id=pipeline_id,
        status="valid" if result.valid else "invalid",
    )


@router.post("/{pipeline_id}/start", response_model=ExecutionResponse)
async def start_pipeline(pipeline_id: int,
                         orchestrator: PipelineOrchestrator = Depends(get_orchestrator)):
    return await orchestrator.start(pipeline_id)


@router.post("/{pipeline_id}/stop", response_model=ExecutionResponse)
async def stop_pipeline(pipeline_id: int,
                        orchestrator: PipelineOrchestrator = Depends(get_orchestrator)):
    return await orchestrator.stop(pipeline_id)


@router.get("/{pipeline_id}/status", response_model=StatusResponse, response_model_exclude_none=True)
async def pipeline_status(pipeline_id: int,
                          orchestrator: PipelineOrchestrator = Depends(get_orchestrator)):
    return await orchestrator.status(pipeline_id)
