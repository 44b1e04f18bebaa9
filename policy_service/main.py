from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from policy_service.api.policies import router as policies_router
from policy_service.core.config import get_settings
from policy_service.core.logging import setup_logging

app = FastAPI(title="Compliance Policy Service")

app.include_router(policies_router)


@app.exception_handler(StarletteHTTPException)
async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})


@app.exception_handler(RequestValidationError)
async def _invalid_body(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Malformed bodies are client errors like any other failed validation.
    return JSONResponse(status_code=400, content={"error": "Invalid request body"})


@app.on_event("startup")
def _startup() -> None:
    setup_logging(level="INFO")
    # Fail fast if required env vars are missing.
    get_settings()


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}
