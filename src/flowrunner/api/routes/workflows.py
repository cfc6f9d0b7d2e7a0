"""Workflow activation, status and execution routes."""
from typing import Any

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field

from flowrunner.errors import (
    InvalidGraph,
    MissingCredentials,
    NotFound,
    SubscriptionError,
)
from flowrunner.node_registry import get_default_registry
from flowrunner.observability import get_logger
from flowrunner.service import get_service
from flowrunner.workflow_runtime import WorkflowGraph

logger = get_logger(__name__)
router = APIRouter()


class ActivateRequest(BaseModel):
    """Request model for activating a workflow."""

    model_config = ConfigDict(populate_by_name=True)

    workflow: dict[str, Any] = Field(..., description="Workflow definition")
    trigger_node: str | dict[str, Any] | None = Field(
        default=None,
        alias="triggerNode",
        description="Trigger node id (or node object)",
    )
    credentials: dict[str, str] = Field(
        default_factory=dict,
        description="Per-workflow credentials",
    )


class ActivateResponse(BaseModel):
    """Response model for activation."""

    model_config = ConfigDict(populate_by_name=True)

    webhook_url: str = Field(..., alias="webhookUrl")


class ExecuteRequest(BaseModel):
    """Request model for a manual run."""

    payload: Any = Field(default=None, description="Trigger payload")


class ValidateRequest(BaseModel):
    """Request model for graph validation."""

    workflow: dict[str, Any] = Field(..., description="Workflow definition")


def _invalid_graph(e: InvalidGraph) -> HTTPException:
    return HTTPException(
        status_code=400,
        detail={"message": str(e), "problems": e.problems},
    )


@router.post(
    "/api/workflows/{workflow_id}/activate",
    response_model=ActivateResponse,
    response_model_by_alias=True,
)
def activate_workflow(workflow_id: str, request: ActivateRequest) -> ActivateResponse:
    """
    Validate, subscribe and register a workflow.

    Raises:
        HTTPException: 400 for an invalid graph or missing credentials,
            502 if the trigger subscription fails
    """
    try:
        result = get_service().activate(
            workflow_id,
            request.workflow,
            trigger_node=request.trigger_node,
            credentials=request.credentials,
        )
    except InvalidGraph as e:
        raise _invalid_graph(e)
    except MissingCredentials as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SubscriptionError as e:
        raise HTTPException(status_code=502, detail=str(e))

    logger.info("Workflow activated via API", extra={"workflow_id": workflow_id})
    return ActivateResponse(webhook_url=result["webhookUrl"])


@router.post("/api/workflows/{workflow_id}/deactivate")
def deactivate_workflow(workflow_id: str) -> dict:
    """
    Deactivate a workflow.

    Raises:
        HTTPException: If the workflow was never registered
    """
    if not get_service().deactivate(workflow_id):
        raise HTTPException(status_code=404, detail="Workflow not found")
    return {"workflowId": workflow_id, "deactivated": True}


@router.get("/api/workflows/{workflow_id}/status")
def workflow_status(workflow_id: str) -> dict:
    """Registration state and execution totals (unknown ids are not an error)."""
    return get_service().status(workflow_id).model_dump(mode="json", by_alias=True)


@router.get("/api/workflows/{workflow_id}/executions")
def list_executions(
    workflow_id: str,
    limit: int = Query(default=5, ge=1, le=500),
) -> list[dict]:
    """Most recent runs, newest first."""
    return [run.to_dict() for run in get_service().history(workflow_id, limit)]


@router.get("/api/workflows/{workflow_id}/data")
def execution_data(workflow_id: str) -> Any:
    """
    Latest run or, before any run completes, the latest trigger payload.

    Raises:
        HTTPException: If there is no data yet
    """
    try:
        return get_service().execution_data(workflow_id)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/api/workflows/{workflow_id}/execute")
def execute_workflow(workflow_id: str, request: ExecuteRequest) -> dict:
    """
    Run a registered workflow now and return the run.

    Raises:
        HTTPException: If the workflow is not registered
    """
    try:
        run = get_service().execute_manual(workflow_id, request.payload)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return run.to_dict()


@router.post("/api/workflows/validate")
def validate_workflow(request: ValidateRequest) -> dict:
    """
    Validate a workflow definition without registering it.

    Raises:
        HTTPException: 400 with the list of problems
    """
    try:
        graph = WorkflowGraph(request.workflow)
    except InvalidGraph as e:
        raise _invalid_graph(e)
    return {
        "valid": True,
        "triggerNode": graph.trigger_node.id,
        "nodes": len(graph.node_ids),
    }


@router.get("/api/nodes")
def list_nodes() -> list[dict]:
    """Built-in node kinds and their parameters."""
    return [d.model_dump() for d in get_default_registry().list_nodes()]
