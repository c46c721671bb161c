"""
Main FastAPI application entry point.
ConsultDesk - tax-consulting service orders, leads and employee assignment
"""
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from consultdesk.config import LOG_LEVEL
from consultdesk.database import init_database
from consultdesk.errors import LifecycleError
from consultdesk.routes import (
    auth_routes, admin_routes, employee_routes, customer_routes, lead_routes, message_routes,
)

logger = logging.getLogger(__name__)


def configure_logging(level: str = LOG_LEVEL):
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


configure_logging()

# Create FastAPI app
app = FastAPI(
    title="ConsultDesk",
    description="Service orders, leads and customer-employee assignment",
    version="1.0.0"
)


# Initialize database on startup
@app.on_event("startup")
async def startup_event():
    init_database()
    logger.info("Database initialized")


@app.get("/")
async def root():
    return {"success": True, "service": "consultdesk"}


# Include route modules
app.include_router(auth_routes.router, prefix="/auth", tags=["Authentication"])
app.include_router(admin_routes.router, prefix="/admin", tags=["Admin"])
app.include_router(employee_routes.router, prefix="/employee", tags=["Employee"])
app.include_router(customer_routes.router, prefix="/customers", tags=["Customer"])
app.include_router(lead_routes.router, prefix="/leads", tags=["Leads"])
app.include_router(message_routes.router, prefix="/messages", tags=["Messages"])


# Error handlers
@app.exception_handler(LifecycleError)
async def lifecycle_error_handler(request: Request, exc: LifecycleError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


@app.exception_handler(500)
async def server_error_handler(request: Request, exc):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        {"success": False, "error": "internal_error", "message": "Internal server error"},
        status_code=500
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("consultdesk.main:app", host="127.0.0.1", port=8000, reload=True)
