import logging
import time
from datetime import datetime

from fastapi import FastAPI, Request, Depends
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from motor.motor_asyncio import AsyncIOMotorDatabase

from learnify.config import CLIENT_URL, LOG_LEVEL
from learnify.database import get_db, get_db_instance, create_indexes
from learnify.courses.course_router import router as course_router
from learnify.courses.enrollment_router import router as enrollment_router
from learnify.courses.module_router import router as module_router
from learnify.courses.material_router import router as material_router
from learnify.courses.community_router import router as community_router
from learnify.chat.router import router as chat_router
from learnify.chat.manager import manager as chat_manager

logger = logging.getLogger("learnify")


def setup_logging():
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
    )


setup_logging()

app = FastAPI(title="Learnify API")


@app.on_event("startup")
async def startup_event():
    await create_indexes(get_db_instance())


app.add_middleware(
    CORSMiddleware,
    allow_origins=[CLIENT_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.info("%s %s -> %d (%.1f ms)", request.method, request.url.path, response.status_code, elapsed_ms)
    return response

# ==================== ERROR HANDLERS ====================

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(p) for p in err["loc"][1:]) or err["loc"][0], "msg": err["msg"]}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"detail": "Invalid request", "errors": errors})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Server error"})

# ==================== ROUTER REGISTRATION ====================
app.include_router(course_router, prefix="/api")
app.include_router(enrollment_router, prefix="/api")
app.include_router(module_router, prefix="/api")
app.include_router(material_router, prefix="/api")
app.include_router(community_router, prefix="/api")
app.include_router(chat_router)
# ============================================================


@app.get("/")
async def root():
    return {
        "name": "Learnify API",
        "status": "running",
        "endpoints": {
            "courses": "/api/courses",
            "modules": "/api/modules",
            "materials": "/api/materials",
            "discussions": "/api/discussions",
            "chat": "/ws/chat"
        }
    }


@app.get("/health")
async def health(db: AsyncIOMotorDatabase = Depends(get_db)):
    try:
        await db.command("ping")
        mongodb = "connected"
    except Exception as e:
        logger.error("Health check: MongoDB ping failed: %s", e)
        mongodb = "disconnected"

    return {
        "status": "ok" if mongodb == "connected" else "degraded",
        "mongodb": mongodb,
        "websocket_connections": chat_manager.active_connections,
        "timestamp": datetime.utcnow().isoformat()
    }
