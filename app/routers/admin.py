from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.deps import get_db
from app.core.permissions import require_director, require_staff
from app.core.security import hash_password
from app.models.school import School
from app.models.user import User
from app.schemas.school import SchoolCreate, SchoolRead
from app.schemas.user import StaffUserCreate, UserRead

router = APIRouter()


@router.get("/schools", response_model=list[SchoolRead])
def list_schools(
    db: Session = Depends(get_db),
    _: User = Depends(require_staff),
):
    return db.query(School).order_by(School.name.asc()).all()


@router.post("/schools", response_model=SchoolRead, status_code=status.HTTP_201_CREATED)
def create_school(
    payload: SchoolCreate,
    db: Session = Depends(get_db),
    _: User = Depends(require_director),
):
    school = School(name=payload.name.strip())
    db.add(school)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="School already exists")

    db.refresh(school)
    return school


@router.post("/users", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: StaffUserCreate,
    db: Session = Depends(get_db),
    _: User = Depends(require_director),
):
    if payload.role != "director" and payload.school_id is None:
        raise HTTPException(status_code=400, detail="Instructors and students need a school")
    if payload.school_id is not None:
        if not db.query(School).filter(School.id == payload.school_id).first():
            raise HTTPException(status_code=404, detail="School not found")

    user = User(
        email=payload.email,
        full_name=payload.full_name,
        hashed_password=hash_password(payload.password),
        role=payload.role,
        school_id=payload.school_id if payload.role != "director" else None,
    )
    db.add(user)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="Email already registered")

    db.refresh(user)
    return user


@router.get("/students", response_model=list[UserRead])
def list_students(
    db: Session = Depends(get_db),
    me: User = Depends(require_staff),
):
    q = db.query(User).filter(User.role == "student")
    if me.role == "instructor":
        q = q.filter(User.school_id == me.school_id)
    return q.order_by(User.email.asc()).all()
