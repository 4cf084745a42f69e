from pydantic import BaseModel
from typing import Any, Dict, List, Optional, TypedDict


# Backend response envelopes
class FieldError(BaseModel):
    fieldLabel: Optional[str] = None
    message: Optional[str] = None

    class Config:
        extra = "allow"


class RecordResult(BaseModel):
    """Per-record outcome of a batch mutation."""
    success: bool
    data: Optional[Dict[str, Any]] = None
    errors: Optional[List[FieldError]] = None
    message: Optional[str] = None

    class Config:
        extra = "allow"


class FetchResponse(BaseModel):
    success: bool
    message: Optional[str] = None
    data: Optional[List[Dict[str, Any]]] = None

    class Config:
        extra = "allow"


class RecordResponse(BaseModel):
    data: Optional[Dict[str, Any]] = None

    class Config:
        extra = "allow"


class BatchResponse(BaseModel):
    success: bool
    message: Optional[str] = None
    results: Optional[List[RecordResult]] = None

    class Config:
        extra = "allow"


# Caller payloads, one per entity
class StudentData(TypedDict, total=False):
    name: str
    email: str
    phone: str
    gradeLevel: Any
    section: str
    enrollmentDate: str
    photoUrl: str
    status: str


class ClassData(TypedDict, total=False):
    name: str
    gradeLevel: Any
    section: str
    capacity: Any
    teacherId: str


class GradeData(TypedDict, total=False):
    subject: str
    score: Any
    maxScore: Any
    gradeType: str
    semester: str
    date: str
    studentId: Any


class AttendanceData(TypedDict, total=False):
    studentId: Any
    date: str
    status: str
    reason: str
