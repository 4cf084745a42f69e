from .records import (
    FieldError, RecordResult, FetchResponse, RecordResponse, BatchResponse,
    StudentData, ClassData, GradeData, AttendanceData
)

__all__ = [
    "FieldError",
    "RecordResult",
    "FetchResponse",
    "RecordResponse",
    "BatchResponse",
    "StudentData",
    "ClassData",
    "GradeData",
    "AttendanceData"
]
