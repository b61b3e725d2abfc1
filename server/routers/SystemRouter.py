from fastapi import APIRouter, Request

from server.models.responses import ApiResponse, HealthStatus

router = APIRouter(tags=["system"])


@router.get("/health")
async def health(request: Request) -> ApiResponse[HealthStatus]:
    """Liveness check including the vector index size.

    Errors of the vector backend propagate and answer with its status code.
    """
    rag_client = request.app.state.rag_client
    stats = await rag_client.do_stats()
    return ApiResponse(
        success=True,
        data=HealthStatus(
            status="ok" if stats.available else "degraded",
            version=request.app.version,
            llm_engine=request.app.state.llm_client.get_engine_name(),
            vector_index=stats,
        ),
    )
