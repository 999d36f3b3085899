from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from app.core.config import settings
from app.core.exceptions import BoardingHubError
from app.core.firebase_init import initialize_firebase, is_firebase_available
from app.core.scheduler import start_scheduler, stop_scheduler

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Initialize Firebase first
logger.info("Initializing Firebase for FastAPI app...")
if not initialize_firebase():
    logger.warning("Firebase initialization failed - app will run without Firebase features")

app = FastAPI(
    title="BoardingHub API",
    description="Boarding house management: properties, rooms, tenants, billing and payments",
    version="1.0.0"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BoardingHubError)
async def boardinghub_error_handler(request: Request, exc: BoardingHubError):
    """Render domain errors with the status code of their category"""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# ==================== OVERDUE BILL SCHEDULER ====================
@app.on_event("startup")
async def startup_event():
    """Start the overdue bill scheduler on app startup"""
    logger.info("FastAPI startup event triggered")
    if settings.ENABLE_OVERDUE_JOB:
        start_scheduler()


@app.on_event("shutdown")
async def shutdown_event():
    """Stop scheduler on app shutdown"""
    logger.info("FastAPI shutdown event triggered")
    stop_scheduler()

# ==================== END SCHEDULER ====================


def safe_include_router(router_module_path: str, router_name: str = "router"):
    """Safely include a router with error handling"""
    try:
        module = __import__(router_module_path, fromlist=[router_name])
        router = getattr(module, router_name)
        app.include_router(router)
        logger.info(f"Successfully included {router_module_path}")
        return True
    except Exception as e:
        logger.error(f"Failed to include {router_module_path}: {str(e)}", exc_info=True)
        return False


logger.info("Loading routers...")

routers_to_load = [
    ("app.routers.properties", "Properties"),
    ("app.routers.rooms", "Rooms"),
    ("app.routers.tenants", "Tenants"),
    ("app.routers.bills", "Billing"),
    ("app.routers.payment_proofs", "Payment Proofs"),
    ("app.routers.payment_history", "Payment History"),
    ("app.routers.notifications", "Notifications"),
]

successful_routers = []
failed_routers = []

for router_path, router_description in routers_to_load:
    if safe_include_router(router_path):
        successful_routers.append(router_description)
    else:
        failed_routers.append(router_description)

logger.info(f"Successfully loaded routers: {successful_routers}")
if failed_routers:
    logger.warning(f"Failed to load routers: {failed_routers}")


@app.get("/")
async def root():
    return {
        "message": "Welcome to the BoardingHub API",
        "firebase_available": is_firebase_available(),
        "loaded_routers": successful_routers,
        "failed_routers": failed_routers
    }


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "firebase_available": is_firebase_available(),
        "loaded_routers": len(successful_routers),
        "failed_routers": len(failed_routers)
    }
