"""
GoSafe - FastAPI Application Entry Point

Smart tourist safety backend for Northeast India: digital tourist IDs,
SOS alerts, geofencing, anomaly detection and the police dashboard.
"""

import sys
import traceback
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from app.core.settings import settings
from app.config.firebase import initialize_firestore
from app.routes import (
    health,
    auth,
    tourists,
    sos,
    map,
    trips,
    anomalies,
    police,
    notifications,
    chat,
    i18n,
)


# Initialize FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Tourist safety platform: digital IDs, SOS, geofencing and authority dashboards",
    debug=settings.DEBUG
)


# Global exception handler to catch ALL exceptions
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch all unhandled exceptions and log them with full traceback."""
    sys.stderr.write("=" * 80 + "\n")
    sys.stderr.write("🔥 GLOBAL EXCEPTION HANDLER CAUGHT EXCEPTION\n")
    sys.stderr.write(f"Path: {request.url.path}\n")
    sys.stderr.write(f"Method: {request.method}\n")
    sys.stderr.write("=" * 80 + "\n")
    sys.stderr.write(traceback.format_exc())
    sys.stderr.write("=" * 80 + "\n")
    sys.stderr.flush()

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": f"Internal server error: {str(exc)}"}
    )


# Pydantic validation error handler
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Catch Pydantic validation errors and log them."""
    sys.stderr.write("=" * 80 + "\n")
    sys.stderr.write("🔥 VALIDATION ERROR HANDLER\n")
    sys.stderr.write(f"Path: {request.url.path}\n")
    sys.stderr.write(f"Method: {request.method}\n")
    sys.stderr.write(f"Errors: {exc.errors()}\n")
    sys.stderr.write("=" * 80 + "\n")
    sys.stderr.flush()

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": exc.errors(), "body": exc.body}
    )


# CORS: explicit origins from settings, never "*"
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Application lifecycle events
@app.on_event("startup")
async def startup_event():
    """
    Initialize services on application startup.
    Firestore connection, then optional demo data.
    """
    print(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    try:
        initialize_firestore()
    except Exception as e:
        print(f"Warning: Firestore initialization failed: {e}")
        print("   The app will start but database operations may fail.")
        return

    if not settings.SEED_DEMO_DATA:
        return

    import asyncio

    def seed_demo_data_sync():
        try:
            from app.services.geo_service import get_geo_service

            created = get_geo_service().seed_demo_data()
            print(f"[STARTUP] Demo data seeded: {created}")
        except Exception as e:
            # Fail gracefully - don't block startup
            print(f"Warning: Failed to seed demo data: {e}")
            traceback.print_exc()

    # Run seeding in executor (non-blocking)
    loop = asyncio.get_event_loop()
    loop.run_in_executor(None, seed_demo_data_sync)


@app.on_event("shutdown")
async def shutdown_event():
    """
    Cleanup on application shutdown.
    """
    print(f"Shutting down {settings.APP_NAME}")


# Include routers
app.include_router(health.router)
app.include_router(auth.router)
app.include_router(tourists.router)
app.include_router(sos.router)
app.include_router(map.router)
app.include_router(trips.router)
app.include_router(anomalies.router)
app.include_router(police.router)
app.include_router(notifications.router)
app.include_router(chat.router)
app.include_router(i18n.router)


# Root endpoint
@app.get("/")
async def root():
    """
    Root endpoint - API information.
    """
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "docs": "/docs",
        "health": "/health",
        "safety_score": "/map/safety-score?lat={lat}&lng={lng}"
    }
