"""
API routes for the PropGraph gateway.

Every graph route resolves the table name and the caller's forwarded
identity through dependencies, then delegates to the PersistenceGateway on
app state. Store selection, fallback and error sanitization all happen in the
gateway; routes only shape the JSON envelope.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Literal

from fastapi import APIRouter, Depends, Header, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from ..gateway import PersistenceGateway
from ..graph import STATUS_NEW, Edge, Node
from ..validation import validate_table_name

logger = logging.getLogger(__name__)

router = APIRouter(tags=["PropGraph"])

ChangeStatus = Literal["new", "existing"]


# --- Request Models ---


class NodeModel(BaseModel):
    """Node as sent by the editor."""

    id: str = Field(..., min_length=1, description="Node ID")
    label: str = Field(..., description="Display name")
    type: str = Field(..., description="Entity type")
    status: ChangeStatus = Field(STATUS_NEW, description="new or existing")
    properties: dict[str, Any] = Field(default_factory=dict)

    def to_node(self) -> Node:
        return Node(
            id=self.id,
            label=self.label,
            type=self.type,
            status=self.status,
            properties=self.properties,
        )


class EdgeModel(BaseModel):
    """Edge as sent by the editor."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1, description="Edge ID")
    source: str = Field(..., description="Source node ID")
    target: str = Field(..., description="Target node ID")
    relationship_type: str = Field(..., alias="relationshipType")
    status: ChangeStatus = Field(STATUS_NEW, description="new or existing")
    properties: dict[str, Any] = Field(default_factory=dict)

    def to_edge(self) -> Edge:
        return Edge(
            id=self.id,
            source=self.source,
            target=self.target,
            relationship_type=self.relationship_type,
            status=self.status,
            properties=self.properties,
        )


class GraphWriteRequest(BaseModel):
    """Batch of new nodes and edges to persist."""

    nodes: list[NodeModel]
    edges: list[EdgeModel]


class StatusUpdateRequest(BaseModel):
    """Set status on nodes and edges in the local store."""

    model_config = ConfigDict(populate_by_name=True)

    node_ids: list[str] = Field(default_factory=list, alias="nodeIds")
    edge_ids: list[str] = Field(default_factory=list, alias="edgeIds")
    status: ChangeStatus = Field(..., description="new or existing")


# --- Dependencies ---


def get_gateway(request: Request) -> PersistenceGateway:
    """Get the persistence gateway from app state."""
    return request.app.state.gateway


def get_access_token(
    request: Request,
    x_forwarded_access_token: str | None = Header(None, alias="X-Forwarded-Access-Token"),
    x_forwarded_email: str | None = Header(None, alias="X-Forwarded-Email"),
) -> str | None:
    """Get the caller's forwarded access token, if any.

    The token itself is never logged.
    """
    if x_forwarded_access_token:
        logger.info(
            "Forwarded user identity",
            extra={"path": request.url.path, "email": x_forwarded_email, "has_token": True},
        )
    return x_forwarded_access_token or None


def get_table_name(
    request: Request,
    table_name: str | None = Query(None, alias="tableName", description="catalog.schema.table"),
) -> str:
    """Validated table name, or the configured default."""
    return validate_table_name(table_name, request.app.state.settings.databricks.table)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# --- Graph Routes ---


@router.get("/graph")
async def fetch_graph(
    table: str = Depends(get_table_name),
    access_token: str | None = Depends(get_access_token),
    gateway: PersistenceGateway = Depends(get_gateway),
):
    """
    Fetch the whole graph.

    Served from the primary store when the caller is authorized, otherwise
    (or on primary failure) from the local store.
    """
    result = await gateway.fetch_graph(access_token, table)
    return {
        "success": True,
        "nodes": [node.to_dict() for node in result.graph.nodes],
        "edges": [edge.to_dict() for edge in result.graph.edges],
        "metadata": result.metadata.to_dict(),
    }


@router.post("/graph")
async def write_graph(
    body: GraphWriteRequest,
    request: Request,
    table_name: str | None = Query(None, alias="tableName"),
    access_token: str | None = Depends(get_access_token),
    gateway: PersistenceGateway = Depends(get_gateway),
):
    """
    Persist new nodes and edges.

    An empty batch succeeds without touching either store.
    """
    if not body.nodes and not body.edges:
        return {
            "success": True,
            "message": "No new changes to write",
            "writtenNodes": 0,
            "writtenEdges": 0,
        }

    table = validate_table_name(table_name, request.app.state.settings.databricks.table)
    result = await gateway.write_graph(
        access_token,
        table,
        [node.to_node() for node in body.nodes],
        [edge.to_edge() for edge in body.edges],
    )
    return {
        "success": True,
        "message": result.message,
        "target": result.metadata.target,
        "jobId": result.job_id,
        "writtenNodes": result.written_nodes,
        "writtenEdges": result.written_edges,
        "metadata": result.metadata.to_dict(),
    }


@router.patch("/graph/status")
async def update_status(
    body: StatusUpdateRequest,
    gateway: PersistenceGateway = Depends(get_gateway),
):
    """Set status on nodes and edges. Local store only."""
    result = await gateway.update_status(body.node_ids, body.edge_ids, body.status)
    return {
        "success": True,
        "message": result.message,
        "updatedNodes": result.updated_nodes,
        "updatedEdges": result.updated_edges,
        "metadata": result.metadata.to_dict(),
    }


@router.post("/graph/seed")
async def reseed(gateway: PersistenceGateway = Depends(get_gateway)):
    """Replace the local store contents with the sample graph."""
    node_count, edge_count = await gateway.reseed()
    return {
        "success": True,
        "message": "Database reseeded successfully",
        "nodeCount": node_count,
        "edgeCount": edge_count,
        "timestamp": _now(),
    }


@router.delete("/graph/node/{node_id}")
async def delete_node(
    node_id: str,
    table: str = Depends(get_table_name),
    access_token: str | None = Depends(get_access_token),
    gateway: PersistenceGateway = Depends(get_gateway),
):
    """Delete a node and every edge touching it."""
    result = await gateway.delete_node(access_token, table, node_id)
    return {
        "success": True,
        "message": result.message,
        "target": result.metadata.target,
        "nodeId": node_id,
        "deleted": result.deleted,
        "metadata": result.metadata.to_dict(),
    }


@router.delete("/graph/edge/{edge_id}")
async def delete_edge(
    edge_id: str,
    table: str = Depends(get_table_name),
    access_token: str | None = Depends(get_access_token),
    gateway: PersistenceGateway = Depends(get_gateway),
):
    """Delete an edge, matched on the primary by (source, target, relationship)."""
    result = await gateway.delete_edge(access_token, table, edge_id)
    return {
        "success": True,
        "message": result.message,
        "target": result.metadata.target,
        "edgeId": edge_id,
        "deleted": result.deleted,
        "metadata": result.metadata.to_dict(),
    }


@router.get("/job/{job_id}")
async def get_job(job_id: str):
    """Writes complete synchronously, so every job has succeeded."""
    return {
        "jobId": job_id,
        "status": "SUCCESS",
        "message": "Write operation completed successfully",
    }


# --- Health ---

health_router = APIRouter(tags=["Health"])


@health_router.get("/health")
async def health(gateway: PersistenceGateway = Depends(get_gateway)):
    """Liveness and store diagnostics."""
    report = await gateway.health()
    report["timestamp"] = _now()
    if report["status"] != "ok":
        return JSONResponse(status_code=503, content=report)
    return report
