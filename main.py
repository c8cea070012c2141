from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings
from database import init_db
from api.budget import router as budget_router
from api.milestones import router as milestones_router
from api.notifications import router as notifications_router
from api.payments import router as payments_router
from api.projects import router as projects_router
from api.work_requests import router as work_requests_router
from services.errors import WorkflowError
from utils.logger import get_logger

log = get_logger("api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    if not settings.stripe_configured:
        log.warning("STRIPE_SECRET_KEY is not set; payment endpoints will fail with 502")
    yield


app = FastAPI(
    title=settings.app_name,
    description="Work requests, milestone review and approve-then-pay API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(WorkflowError)
async def workflow_error_handler(request: Request, exc: WorkflowError):
    if exc.status_code >= 500:
        log.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, **exc.extra})


app.include_router(projects_router)
app.include_router(work_requests_router)
app.include_router(milestones_router)
app.include_router(budget_router)
app.include_router(payments_router)
app.include_router(notifications_router)


@app.get("/health")
async def health():
    return {"status": "ok"}
