from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from api.v1 import password_recovery
from core.config import settings
from core.exceptions import PersistenceError
from db.base import initialize_database
from db.session import engine, SessionLocal
from sqlalchemy import text
from utils.logging_config import configure_logging, RequestContextMiddleware
from utils.responses import failure_json

# Configure logging with date-based files and TTL retention
logger = configure_logging("hris_recovery")

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.VERSION,
    debug=settings.DEBUG
)

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        message = str(err.get("msg", "Invalid value")).removeprefix("Value error, ")
        errors.append({"field": ".".join(loc), "message": message})
    return failure_json("Validation Error", status_code=400, errors=errors)

@app.exception_handler(PersistenceError)
async def persistence_exception_handler(request: Request, exc: PersistenceError):
    logger.error(f"Persistence failure at {request.url.path}: {exc}")
    return failure_json("Internal server error", status_code=500)

# Global exception handler to ensure 500s for unexpected errors
@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error at {request.url.path}: {exc}")
    return failure_json("Internal server error", status_code=500)

# Add logging context middleware to capture client ip and API path
app.add_middleware(RequestContextMiddleware)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(password_recovery.router, prefix=settings.API_V1_STR, tags=["Password Recovery"])

@app.on_event("startup")
async def startup_db_client():
    """Ensure the recovery tables exist before the first request."""
    await initialize_database()
    logger.info("Application startup complete")

@app.on_event("shutdown")
async def shutdown_db_client():
    try:
        await engine.dispose()
        logger.info("Disposed SQL engine")
    except Exception as e:
        logger.warning(f"Engine dispose failed: {e}")
    logger.info("Application shutdown complete")

@app.get("/")
async def root():
    return {"message": settings.APP_NAME, "version": settings.VERSION}

@app.get("/health")
async def health_check():
    try:
        async with SessionLocal() as db:
            await db.execute(text("SELECT 1"))
        db_status = "sql_connected"
    except Exception as e:
        logger.warning(f"Health SQL check failed: {e}")
        db_status = "sql_unavailable"
    return {"status": "healthy" if db_status == "sql_connected" else "degraded", "database": db_status}
