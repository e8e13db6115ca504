import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .errors import GatewayError, GenerationError, NotAuthenticated, TaskNotFoundError, ValidationError
from .logging_setup import setup_logging
from .routers import assistant as assistant_router
from .routers import tasks as tasks_router
from .settings import get_settings

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "health", "description": "Service health and status endpoints."},
    {
        "name": "tasks",
        "description": "Task collection: filtered views, CRUD, completion and reordering.",
    },
    {
        "name": "assistant",
        "description": "Natural-language task entry, daily brief and optimized plans.",
    },
]

_settings = get_settings()
setup_logging(_settings.log_level, _settings.log_file)

app = FastAPI(
    title="Synctodo",
    description="Personal task list with a synchronized collection store and an optional assistant.",
    version="0.1.0",
    openapi_tags=openapi_tags,
)

# Configure CORS based on settings (.env -> CORS_ALLOW_ORIGINS), with '*' fallback
allow_all = (_settings.cors_allow_origins == ["*"]) or (len(_settings.cors_allow_origins) == 0)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if allow_all else _settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error(status_code: int, error: str, message: str, detail) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "message": message, "detail": detail},
    )


# Global exception handlers for consistent JSON error bodies
@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Return a consistent JSON structure for request validation errors.

    Response format:
        {
            "error": "ValidationError",
            "detail": [... pydantic/fastapi error details ...],
            "message": "Request validation failed"
        }
    """
    return _error(422, "ValidationError", "Request validation failed", exc.errors())


@app.exception_handler(ValidationError)
async def validation_exception_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return _error(422, "ValidationError", exc.message, {"field": exc.field, "msg": exc.message})


@app.exception_handler(NotAuthenticated)
async def not_authenticated_handler(request: Request, exc: NotAuthenticated) -> JSONResponse:
    return _error(401, "NotAuthenticated", "Not authenticated", str(exc))


@app.exception_handler(TaskNotFoundError)
async def not_found_handler(request: Request, exc: TaskNotFoundError) -> JSONResponse:
    return _error(404, "NotFound", "Task not found", str(exc))


@app.exception_handler(GatewayError)
async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    logger.error("Gateway error on %s %s: %s", request.method, request.url.path, exc)
    return _error(502, "GatewayError", "Could not reach the task collection", str(exc))


@app.exception_handler(GenerationError)
async def generation_error_handler(request: Request, exc: GenerationError) -> JSONResponse:
    logger.error("Assistant error on %s %s: %s", request.method, request.url.path, exc)
    return _error(502, "GenerationError", "The assistant could not complete the request", str(exc))


# PUBLIC_INTERFACE
@app.get("/", summary="Health Check", tags=["health"])
def health_check():
    """
    Health check endpoint.

    Returns:
        A JSON object indicating service health.
    """
    return {"message": "Healthy", "backend": _settings.persistence_backend}


# Include routers
app.include_router(tasks_router.router)
app.include_router(assistant_router.router)
