"""Node export API."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from common.logging import get_logger

from ..dependencies import get_exporter
from ..metrics import ExportMetrics
from ..models import ExportNodesRequest
from ..pipeline.exporter import NodeExporter

logger = get_logger(__name__)

router = APIRouter(prefix="/api/figma", tags=["figma"])


@router.post("/export-nodes")
async def export_nodes(
    body: ExportNodesRequest, exporter: NodeExporter = Depends(get_exporter)
) -> JSONResponse:
    """Export the requested nodes as enriched trees with resolved images."""
    metrics = ExportMetrics()
    try:
        result = await exporter.export(body.slides, metrics)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Node export failed", slides=len(body.slides))
        return JSONResponse(status_code=500, content={"error": f"Node export failed: {exc}"})
    return JSONResponse(content=result.to_dict())


__all__ = ["router"]
