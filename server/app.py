import os
import logging
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from routes import health, realtime, application_routes, admin_routes, upload_routes
import firebase_admin
from firebase_admin import credentials
from fastapi.middleware.cors import CORSMiddleware
from services.storage_svc import UPLOAD_DIR, UPLOAD_BASE_URL

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

# --- Firebase init ---
cred_path = os.getenv("GOOGLE_APPLICATION_CREDENTIALS")
if not firebase_admin._apps:
    if cred_path and os.path.exists(cred_path):
        options = {}
        if os.getenv("FIREBASE_STORAGE_BUCKET"):
            options["storageBucket"] = os.getenv("FIREBASE_STORAGE_BUCKET")
        firebase_admin.initialize_app(credentials.Certificate(cred_path), options or None)
    elif os.getenv("APPLICATION_STORE", "firestore").lower() == "firestore":
        raise RuntimeError("Missing GOOGLE_APPLICATION_CREDENTIALS env")
    else:
        logger.warning("⚠️  Firebase not initialized; token verification will fail")

# CORS origins from environment
cors_origins = os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")

# --- FastAPI app ---
app = FastAPI(
    title="Scholarship Applications API",
    description="Backend API for scholarship applications: drafts, documents, submission and review",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Local uploads are served from here when no storage bucket is configured
os.makedirs(UPLOAD_DIR, exist_ok=True)
app.mount(UPLOAD_BASE_URL, StaticFiles(directory=UPLOAD_DIR), name="uploads")

# ==================== Startup Event ====================

@app.on_event("startup")
async def startup_event():
    """Verify connections on startup."""
    logger.info("🚀 Starting Scholarship Applications API...")

    from services.redis_manager import redis_manager
    if redis_manager.ping():
        logger.info("✅ Redis connection verified")
    else:
        logger.warning("⚠️  Redis connection failed; realtime updates and email queueing are unavailable")

# Include routers
app.include_router(health.router, prefix="/health", tags=["health"])
app.include_router(application_routes.router, prefix="/api/v1/user/applications", tags=["applications"])
app.include_router(admin_routes.router, prefix="/api/v1/admin/applications", tags=["admin"])
app.include_router(upload_routes.router, prefix="/api/v1/uploads", tags=["uploads"])
app.include_router(realtime.router, prefix="/api/v1/realtime", tags=["realtime"])

@app.get("/", tags=["root"])
def root():
    return {
        "message": "Scholarship Applications API",
        "docs": "/docs",
        "health": "/health/live",
        "flower": "http://localhost:5555 (Celery monitoring)",
        "websocket": "ws://localhost:8000/api/v1/realtime/ws/applications/{uid}?token={id_token}"
    }
