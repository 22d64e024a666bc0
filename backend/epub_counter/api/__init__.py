# Router aggregator – import each route module here and expose ``api_router``
# for convenient inclusion in the FastAPI app.

from fastapi import APIRouter

from . import (
    routes_jobs,
    routes_models,
    routes_process,
    routes_results,
    routes_sse,
)


api_router = APIRouter()
api_router.include_router(routes_process.router, tags=["process"])
api_router.include_router(routes_jobs.router, prefix="/jobs", tags=["jobs"])
api_router.include_router(routes_sse.router, prefix="/sse", tags=["sse"])
api_router.include_router(routes_results.router, tags=["results"])
api_router.include_router(routes_models.router, tags=["models"])
