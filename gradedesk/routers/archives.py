"""Archived session endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from gradedesk.auth import get_owner
from gradedesk.deps import get_archive_manager, get_grading_session, gradebook_read
from gradedesk.gradebook.archive import ArchiveManager, ArchiveNotFoundError, ArchiveRestoreError
from gradedesk.gradebook.session import GradingSession, SessionBusyError
from gradedesk.gradebook.state import ArchiveSession
from gradedesk.grade_store import GradeLogError
from gradedesk.schemas import GradebookRead

router = APIRouter(prefix="/archives", tags=["archives"])
logger = logging.getLogger(__name__)


@router.get("", response_model=list[ArchiveSession])
def list_archives(
    owner: str = Depends(get_owner),
    manager: ArchiveManager = Depends(get_archive_manager),
) -> list[ArchiveSession]:
    try:
        return manager.list_sessions(owner)
    except GradeLogError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc


@router.post("/{archive_id}/restore", response_model=GradebookRead)
def restore_archive(
    archive_id: str,
    session: GradingSession = Depends(get_grading_session),
    manager: ArchiveManager = Depends(get_archive_manager),
) -> GradebookRead:
    try:
        with session.busy():
            manager.restore(session, archive_id)
    except SessionBusyError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except ArchiveNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Archive not found") from exc
    except ArchiveRestoreError as exc:
        raise HTTPException(
            status_code=500,
            detail={
                "message": f"{exc} The saved grades need a manual re-sync.",
                "replayed": exc.replayed,
                "total": exc.total,
            },
        ) from exc
    except GradeLogError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return gradebook_read(session)


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
def clear_archives(
    owner: str = Depends(get_owner),
    manager: ArchiveManager = Depends(get_archive_manager),
) -> None:
    try:
        manager.clear_all(owner)
    except GradeLogError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    logger.info("archives cleared", extra={"owner": owner})
