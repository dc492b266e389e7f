# -------------------------------------------------
# STANDARD IMPORTS
# -------------------------------------------------
import logging

import psycopg2
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

# -------------------------------------------------
# DB
# -------------------------------------------------
from app.db import get_db
from app.db_auto_migrate import run_migrations

# -------------------------------------------------
# ROUTERS
# -------------------------------------------------
from app.routes import (
    admin,
    affiliate,
    bots,
    channel_reports,
    channels,
    courses,
    cron,
    leaderboard,
    notifications,
    paion,
    premium_access,
    profile,
    rafflecraft,
    referral,
    royalties,
)
from app.utils.errors import ServiceError
from app.utils.rate_limit import rate_limit_middleware

# -------------------------------------------------
# LOGGING SETUP
# -------------------------------------------------
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("aionet-backend")

# -------------------------------------------------
# FASTAPI APP
# -------------------------------------------------
app = FastAPI(
    title="AIONET Member Platform API",
    version="1.0.0",
)

app.middleware("http")(rate_limit_middleware)


# -------------------------------------------------
# ERROR HANDLING
# -------------------------------------------------
@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    if exc.status_code >= 500:
        logger.error("❌ %s %s → %s", request.method, request.url.path, exc.message)
    else:
        logger.info("⚠️ %s %s → %s (%s)", request.method, request.url.path, exc.message, exc.code)

    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.message, "code": exc.code},
    )


@app.exception_handler(psycopg2.Error)
async def database_error_handler(request: Request, exc: psycopg2.Error):
    logger.error("❌ %s %s database error: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "error": "Database error", "code": "DATABASE_ERROR"},
    )


@app.exception_handler(RuntimeError)
async def runtime_error_handler(request: Request, exc: RuntimeError):
    logger.exception("❌ %s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "error": "Internal server error", "code": "INTERNAL_ERROR"},
    )


# -------------------------------------------------
# STARTUP LIFECYCLE (MIGRATIONS)
# -------------------------------------------------
@app.on_event("startup")
async def startup_event():
    logger.info("🚀 Startup event triggered")

    try:
        logger.info("🛠 Running DB migrations...")
        run_migrations()
        logger.info("✅ Migrations complete")
    except Exception as e:
        logger.error(f"❌ Migration error: {e}")


# -------------------------------------------------
# ROUTERS
# -------------------------------------------------
app.include_router(premium_access.router)
app.include_router(profile.router)
app.include_router(paion.router)
app.include_router(affiliate.router)
app.include_router(rafflecraft.router)
app.include_router(rafflecraft.quiz_router)
app.include_router(cron.router)
app.include_router(royalties.router)
app.include_router(channel_reports.router)
app.include_router(notifications.router)
app.include_router(bots.router)
app.include_router(courses.router)
app.include_router(courses.lessons_router)
app.include_router(channels.router)
app.include_router(leaderboard.router)
app.include_router(referral.router)
app.include_router(admin.router)


# -------------------------------------------------
# HEALTH CHECK (NO DB REQUIRED)
# -------------------------------------------------
@app.get("/health", status_code=status.HTTP_200_OK)
def health():
    return {"status": "ok"}


# -------------------------------------------------
# DB TEST (CONNECTION CHECK)
# -------------------------------------------------
@app.get("/db/test", status_code=status.HTTP_200_OK)
def db_test():
    try:
        conn = get_db()
        conn.close()
        return {"db": "ok"}
    except RuntimeError as e:
        return {"db": "error", "detail": str(e)}
