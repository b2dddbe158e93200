from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from levelcheck.config import settings
from levelcheck.db.database import init_db, close_db
from levelcheck.middleware.auth import AuthMiddleware
from levelcheck.routes.assessments import router as assessments_router

# CORS: use CORS_ORIGINS setting (comma-separated) or local dev defaults.
if settings.cors_origins:
    _allowed_origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
else:
    _allowed_origins = [
        "http://localhost:8000",
        "http://127.0.0.1:8000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    yield
    await close_db()


app = FastAPI(title="Levelcheck Test Engine", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)
app.add_middleware(AuthMiddleware)

app.include_router(assessments_router)


@app.get("/health")
async def health_check():
    return {"status": "ok"}
