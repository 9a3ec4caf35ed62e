import math

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import case, func, or_
from sqlalchemy.orm import Session

from faceenroll.core.config import settings
from faceenroll.db.session import get_db
from faceenroll.db.models.face import Face
from faceenroll.db.models.subject import Subject
from faceenroll.db.models.subject_face import SubjectFace
from faceenroll.schemas.subjects import (
    FaceRecord,
    Pagination,
    SubjectCreateRequest,
    SubjectDetailResponse,
    SubjectListResponse,
    SubjectSummary,
)

router = APIRouter(prefix="/api/subjects", tags=["Subjects"])


def _like_pattern(search: str) -> str:
    escaped = search.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def build_pagination(page: int, page_size: int, total: int) -> Pagination:
    total_pages = math.ceil(total / page_size) if total else 0
    return Pagination(
        current_page=page,
        total_pages=total_pages,
        total_items=total,
        has_next=page < total_pages,
        has_prev=page > 1,
    )


def _face_counts(db: Session, subject_ids: list[int]) -> dict[int, tuple[int, int]]:
    if not subject_ids:
        return {}

    rows = (
        db.query(
            SubjectFace.subject_id,
            func.count(Face.id),
            func.sum(case((Face.is_active.is_(True), 1), else_=0)),
        )
        .join(Face, Face.id == SubjectFace.face_id)
        .filter(SubjectFace.subject_id.in_(subject_ids))
        .group_by(SubjectFace.subject_id)
        .all()
    )
    return {subject_id: (int(total or 0), int(active or 0)) for subject_id, total, active in rows}


@router.get("", response_model=SubjectListResponse)
def list_subjects(
    page: int = Query(1, ge=1),
    search: str = "",
    db: Session = Depends(get_db),
):
    page_size = settings.PAGE_SIZE
    query = db.query(Subject)

    search = search.strip()
    if search:
        pattern = _like_pattern(search)
        query = query.filter(
            or_(
                Subject.first_name.ilike(pattern, escape="\\"),
                Subject.last_name.ilike(pattern, escape="\\"),
            )
        )

    total = query.count()
    subjects = (
        query.order_by(Subject.first_name.asc(), Subject.last_name.asc(), Subject.id.asc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )

    counts = _face_counts(db, [s.id for s in subjects])

    return SubjectListResponse(
        subjects=[
            SubjectSummary(
                id=s.id,
                first_name=s.first_name,
                last_name=s.last_name,
                created_at=s.created_at,
                total_faces=counts.get(s.id, (0, 0))[0],
                active_faces=counts.get(s.id, (0, 0))[1],
            )
            for s in subjects
        ],
        pagination=build_pagination(page, page_size, total),
    )


@router.post("", response_model=SubjectSummary, status_code=201)
def create_subject(payload: SubjectCreateRequest, db: Session = Depends(get_db)):
    subject = Subject(
        first_name=payload.first_name.strip(),
        last_name=payload.last_name.strip(),
    )
    db.add(subject)
    db.commit()
    db.refresh(subject)

    return SubjectSummary(
        id=subject.id,
        first_name=subject.first_name,
        last_name=subject.last_name,
        created_at=subject.created_at,
    )


@router.get("/{subject_id}", response_model=SubjectDetailResponse)
def get_subject(subject_id: int, db: Session = Depends(get_db)):
    subject = db.query(Subject).filter(Subject.id == subject_id).first()
    if not subject:
        raise HTTPException(status_code=404, detail="Subject not found")

    faces = (
        db.query(Face)
        .join(SubjectFace, SubjectFace.face_id == Face.id)
        .filter(SubjectFace.subject_id == subject_id)
        .order_by(Face.created_at.desc(), Face.id.desc())
        .all()
    )

    return SubjectDetailResponse(
        id=subject.id,
        first_name=subject.first_name,
        last_name=subject.last_name,
        created_at=subject.created_at,
        faces=[
            FaceRecord(
                id=f.id,
                is_active=f.is_active,
                created_at=f.created_at,
                has_image=bool(f.template_data),
            )
            for f in faces
        ],
    )
