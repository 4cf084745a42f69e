"""
Entity descriptors and the record client contract shared by every gateway.

A descriptor tells the generic repository which table to talk to, which
fields to request and write, how to coerce numeric fields and how to build
the display ``Name`` of a record.
"""

import math
import re
import string
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, Field, validator


_INT_PREFIX = re.compile(r"^[+-]?\d+")
_FLOAT_PREFIX = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def coerce_int(value: Any) -> Any:
    """
    Parse the leading integer of a form value.

    ``"5"`` and ``"5.7"`` both give 5 and ``"12abc"`` gives 12. Values with no
    leading integer (``"abc"``, ``""``, ``None``) give NaN, which is sent
    as-is for the backend to reject.
    """
    if isinstance(value, bool):
        return math.nan
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else math.nan
    if isinstance(value, str):
        match = _INT_PREFIX.match(value.strip())
        if match:
            return int(match.group())
    return math.nan


def coerce_float(value: Any) -> Any:
    """Parse the leading decimal number of a form value, NaN if there is none."""
    if isinstance(value, bool):
        return math.nan
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        match = _FLOAT_PREFIX.match(value.strip())
        if match:
            return float(match.group())
    return math.nan


class FieldKind(str, Enum):
    """How a field value is prepared before it is sent to the backend."""
    TEXT = "text"
    INTEGER = "integer"
    FLOAT = "float"


_COERCERS: Dict[FieldKind, Callable[[Any], Any]] = {
    FieldKind.INTEGER: coerce_int,
    FieldKind.FLOAT: coerce_float,
}


class FieldSpec(BaseModel):
    """A single attribute of an entity table."""
    name: str
    kind: FieldKind = FieldKind.TEXT
    default: Optional[Any] = None  # substituted when the caller value is falsy
    writable: bool = True

    def prepare(self, value: Any) -> Any:
        coercer = _COERCERS.get(self.kind)
        if coercer is not None:
            return coercer(value)
        if self.default is not None and not value:
            return self.default
        return value


class EntityDescriptor(BaseModel):
    """Configuration for one backend table."""
    table: str
    fields: List[FieldSpec]
    name_template: str = "{name}"
    upsert_key: List[str] = Field(default_factory=list)

    # Messages surfaced to callers and users
    fetch_failed_message: str = "Failed to fetch records"
    not_found_message: str = "Record not found"
    delete_failed_message: str = "Failed to delete record"

    @validator("table")
    def validate_table(cls, v):
        if not v or not v.strip():
            raise ValueError("table name is required")
        return v.strip()

    @property
    def read_fields(self) -> List[str]:
        """Field names requested on every read: display name, attributes, tags."""
        return ["Name"] + [f.name for f in self.fields]

    @property
    def writable_fields(self) -> List[FieldSpec]:
        return [f for f in self.fields if f.writable]

    @property
    def numeric_fields(self) -> List[str]:
        return [f.name for f in self.fields if f.kind != FieldKind.TEXT]

    def template_placeholders(self) -> List[str]:
        return [
            name for _, name, _, _ in string.Formatter().parse(self.name_template)
            if name
        ]

    def synthesize_name(self, data: Dict[str, Any]) -> str:
        """Build the display ``Name``; missing placeholder values render empty."""
        values = {}
        for key in self.template_placeholders():
            value = data.get(key)
            values[key] = "" if value is None else value
        return self.name_template.format(**values)


@runtime_checkable
class RecordClientProtocol(Protocol):
    """Protocol that every backend record client must follow."""

    async def fetch_records(self, table: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """List records of a table, optionally filtered by ``params['where']``."""
        ...

    async def get_record_by_id(
        self, table: str, record_id: Any, params: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        """Fetch a single record, ``None`` when the backend has nothing to say."""
        ...

    async def create_record(self, table: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """Create the records in ``params['records']``."""
        ...

    async def update_record(self, table: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """Replace the records in ``params['records']`` (each carries its ``Id``)."""
        ...

    async def delete_record(self, table: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """Delete the records listed in ``params['RecordIds']``."""
        ...


class EntityConfigManager:
    """Registry of entity descriptors keyed by table name."""

    def __init__(self):
        self._descriptors: Dict[str, EntityDescriptor] = {}

    def register(self, descriptor: EntityDescriptor) -> None:
        """Register (or replace) the descriptor for a table."""
        self._descriptors[descriptor.table] = descriptor

    def get(self, table: str) -> Optional[EntityDescriptor]:
        return self._descriptors.get(table)

    def list_tables(self) -> List[str]:
        return list(self._descriptors)

    def list_descriptors(self) -> Dict[str, EntityDescriptor]:
        return self._descriptors.copy()

    def remove(self, table: str) -> bool:
        return self._descriptors.pop(table, None) is not None

    def validate_descriptor(self, descriptor: EntityDescriptor) -> List[str]:
        """Validate a descriptor and return any errors."""
        errors = []

        names = [f.name for f in descriptor.fields]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        for name in duplicates:
            errors.append(f"Duplicate field: {name}")

        if "Name" in names:
            errors.append("Name is synthesized and must not be declared as a field")

        # Placeholders may reference declared fields or the caller-supplied name
        allowed = set(names) | {"name"}
        for placeholder in descriptor.template_placeholders():
            if placeholder not in allowed:
                errors.append(f"Name template references unknown field: {placeholder}")

        for key in descriptor.upsert_key:
            if key not in names:
                errors.append(f"Upsert key references unknown field: {key}")

        return errors


STUDENT_DESCRIPTOR = EntityDescriptor(
    table="student",
    fields=[
        FieldSpec(name="email"),
        FieldSpec(name="phone"),
        FieldSpec(name="gradeLevel", kind=FieldKind.INTEGER),
        FieldSpec(name="section"),
        FieldSpec(name="enrollmentDate"),
        FieldSpec(name="photoUrl", default=""),
        FieldSpec(name="status"),
        FieldSpec(name="Tags", writable=False),
    ],
    name_template="{name}",
    fetch_failed_message="Failed to fetch students",
    not_found_message="Student not found",
    delete_failed_message="Failed to delete student",
)

CLASS_DESCRIPTOR = EntityDescriptor(
    table="class",
    fields=[
        FieldSpec(name="gradeLevel", kind=FieldKind.INTEGER),
        FieldSpec(name="section"),
        FieldSpec(name="capacity", kind=FieldKind.INTEGER),
        FieldSpec(name="teacherId"),
        FieldSpec(name="Tags", writable=False),
    ],
    name_template="{name}",
    fetch_failed_message="Failed to fetch classes",
    not_found_message="Class not found",
    delete_failed_message="Failed to delete class",
)

GRADE_DESCRIPTOR = EntityDescriptor(
    table="grade",
    fields=[
        FieldSpec(name="subject"),
        FieldSpec(name="score", kind=FieldKind.FLOAT),
        FieldSpec(name="maxScore", kind=FieldKind.FLOAT),
        FieldSpec(name="gradeType"),
        FieldSpec(name="semester"),
        FieldSpec(name="date"),
        FieldSpec(name="studentId", kind=FieldKind.INTEGER),
        FieldSpec(name="Tags", writable=False),
    ],
    name_template="{subject} - {gradeType}",
    fetch_failed_message="Failed to fetch grades",
    not_found_message="Grade not found",
    delete_failed_message="Failed to delete grade",
)

ATTENDANCE_DESCRIPTOR = EntityDescriptor(
    table="attendance",
    fields=[
        FieldSpec(name="studentId", kind=FieldKind.INTEGER),
        FieldSpec(name="date"),
        FieldSpec(name="status"),
        FieldSpec(name="reason", default=""),
        FieldSpec(name="Tags", writable=False),
    ],
    name_template="Attendance - {date}",
    upsert_key=["studentId", "date"],
    fetch_failed_message="Failed to fetch attendance",
    not_found_message="Attendance record not found",
    delete_failed_message="Failed to delete attendance record",
)

DEFAULT_DESCRIPTORS = [
    STUDENT_DESCRIPTOR,
    CLASS_DESCRIPTOR,
    GRADE_DESCRIPTOR,
    ATTENDANCE_DESCRIPTOR,
]


# Global descriptor registry
entity_config_manager = EntityConfigManager()
for _descriptor in DEFAULT_DESCRIPTORS:
    entity_config_manager.register(_descriptor)
