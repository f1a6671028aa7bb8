"""FastAPI application entrypoint."""

import os
from pathlib import Path

from fastapi import FastAPI
from fastapi import Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.responses import Response
from sqlalchemy import text
from sqlmodel import Session

from gradedesk import db
from gradedesk.auth import api_key_accepted
from gradedesk.grading.openai_grader import GraderUnavailableError
from gradedesk.routers.archives import router as archives_router
from gradedesk.routers.evaluation import router as evaluation_router
from gradedesk.routers.gradebook import router as gradebook_router
from gradedesk.routers.grades import router as grades_router
from gradedesk.settings import settings

app = FastAPI(title=settings.app_name, version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def enforce_api_key(request: Request, call_next):
    if not api_key_accepted(request):
        return JSONResponse(status_code=401, content={"detail": "Unauthorized"})
    return await call_next(request)


@app.exception_handler(GraderUnavailableError)
async def grader_unavailable(request: Request, exc: GraderUnavailableError) -> JSONResponse:
    del request
    return JSONResponse(status_code=503, content={"detail": str(exc), "error_kind": "grader_unavailable"})


app.include_router(gradebook_router)
app.include_router(evaluation_router)
app.include_router(grades_router)
app.include_router(archives_router)


@app.on_event("startup")
def on_startup() -> None:
    db.ensure_dir(settings.data_path)
    db.ensure_dir(Path(settings.sqlite_path).parent)
    db.create_db_and_tables()


@app.get("/health", tags=["meta"])
def health() -> dict[str, bool]:
    openai_api_key = os.getenv("OPENAI_API_KEY", "")
    return {"ok": True, "openai_configured": bool(openai_api_key.strip())}


@app.get("/health/deep", tags=["meta"])
def deep_health() -> dict[str, bool | str]:
    openai_api_key = os.getenv("OPENAI_API_KEY", "")

    db_ok = False
    try:
        with Session(db.engine) as session:
            session.exec(text("SELECT 1"))
        db_ok = True
    except Exception:
        db_ok = False

    return {
        "ok": True,
        "openai_configured": bool(openai_api_key.strip()),
        "mock_models": os.getenv("OPENAI_MOCK", "").strip() == "1",
        "data_dir": str(settings.data_path),
        "db_ok": db_ok,
    }


@app.options("/{path:path}", include_in_schema=False)
async def preflight(path: str) -> Response:
    del path
    return Response(status_code=204)
