from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from docvault.config import get_settings
from docvault.db import get_engine
from docvault.deps import shutdown_ingestion_service
from docvault.errors import ServiceError
from docvault.observability import REQUEST_ID_HEADER, bind_request_id, get_logger, setup_logging
from docvault.routers import auth, documents, health, ingestion, users

API_PREFIX = "/api/v1"

logger = get_logger(__name__)

app = FastAPI(title="DocVault API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(get_settings().cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
for module in (auth, users, documents, ingestion):
    app.include_router(module.router, prefix=API_PREFIX)


@app.on_event("startup")
def startup() -> None:
    settings = get_settings()
    setup_logging(settings.log_level)
    get_engine()
    logger.info("api started", environment=settings.environment, version=settings.version)


@app.on_event("shutdown")
def shutdown() -> None:
    shutdown_ingestion_service()
    logger.info("api stopped")


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    request_id = bind_request_id(request.headers.get(REQUEST_ID_HEADER))
    response = await call_next(request)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("service error", path=request.url.path, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


def run() -> None:
    import uvicorn

    uvicorn.run("docvault.main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    run()
