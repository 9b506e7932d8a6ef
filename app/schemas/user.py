from typing import Literal

from pydantic import BaseModel, EmailStr, Field


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=72)
    full_name: str | None = None
    school_id: int | None = None


class StaffUserCreate(UserCreate):
    role: Literal["director", "instructor", "student"] = "instructor"


class UserRead(BaseModel):
    id: int
    email: EmailStr
    full_name: str | None = None
    role: str
    school_id: int | None = None

    class Config:
        from_attributes = True
