import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from geoaccess.api.routes import router as api_router
from geoaccess.core.database import engine
from geoaccess.core.errors import AccessError
from geoaccess.core.logging import configure_logging, get_security_logger

logger = logging.getLogger(__name__)
security_log = get_security_logger()


def error_body(kind: str, message: str, details=None) -> dict:
    return {"error": {"kind": kind, "message": message, "details": details}}


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(title="GeoAccess API", openapi_url="/openapi.json")

    @app.exception_handler(AccessError)
    async def access_error_handler(request: Request, exc: AccessError):
        if exc.status_code >= 500:
            security_log.error(
                "Store failure",
                exc_info=exc.__cause__ or exc,
                extra={"path": request.url.path, "method": request.method, "error": type(exc).__name__},
            )
        return JSONResponse(status_code=exc.status_code, content=error_body(exc.kind, exc.message, exc.details))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        # full detail goes to the log only, never to the caller
        security_log.error(
            "Unhandled error",
            exc_info=exc,
            extra={"path": request.url.path, "method": request.method, "error": type(exc).__name__},
        )
        return JSONResponse(status_code=500, content=error_body("internal", "Internal server error"))

    @app.get("/health", include_in_schema=False)
    def health():
        # Liveness: process is up
        return {"status": "ok"}

    @app.get("/ready", include_in_schema=False)
    def ready():
        # Readiness: DB reachable
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return {"status": "ready"}
        except Exception as e:
            raise HTTPException(status_code=503, detail="db not ready") from e

    app.include_router(api_router, prefix="/api")
    return app


app = create_app()
