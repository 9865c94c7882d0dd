from fastapi import APIRouter
import logging
from services.application_store import get_application_store
from services.redis_manager import redis_manager

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/live")
def live():
    return {"status": "ok"}


@router.get("/ready")
def ready():
    store = get_application_store()
    try:
        store_ok = store.ping()
    except Exception as e:
        logger.warning(f"Application store ping failed: {e}")
        store_ok = False

    redis_ok = redis_manager.ping()
    return {
        "status": "ok" if store_ok and redis_ok else "degraded",
        "store": {"backend": type(store).__name__, "ok": store_ok},
        "redis": {"ok": redis_ok},
    }
