from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from auditor.api.deps import get_orchestrator
from auditor.api.routes import audit
from auditor.config import settings


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Drop any reveal timers still booked when the server stops
    get_orchestrator().scheduler.cancel_all()


app = FastAPI(
    title="Epistemic Auditor",
    description="Citation-backed claim, forecast and concept audits",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(audit.router)


@app.get("/api/health")
async def health():
    return {"status": "ok", "service": "epistemic-auditor"}
