"""
Tests for entity descriptors and numeric coercion.
"""

import math
import pytest

from classbook.core.entity_config import (
    FieldKind, FieldSpec, EntityDescriptor, EntityConfigManager, RecordClientProtocol,
    coerce_int, coerce_float, entity_config_manager,
    STUDENT_DESCRIPTOR, CLASS_DESCRIPTOR, GRADE_DESCRIPTOR, ATTENDANCE_DESCRIPTOR
)
from classbook.integrations.apper import InMemoryRecordClient, ApperClient


class TestCoercion:
    """Test loose numeric parsing of form values."""

    @pytest.mark.parametrize("value,expected", [
        ("5", 5),
        (" 7 ", 7),
        ("5.7", 5),
        ("12abc", 12),
        ("-3", -3),
        (9, 9),
        (4.9, 4),
    ])
    def test_coerce_int(self, value, expected):
        assert coerce_int(value) == expected

    @pytest.mark.parametrize("value", ["abc", "", None, True, float("inf"), [1]])
    def test_coerce_int_unparseable_is_nan(self, value):
        assert math.isnan(coerce_int(value))

    @pytest.mark.parametrize("value,expected", [
        ("87.5", 87.5),
        ("100", 100.0),
        (".5", 0.5),
        ("1e2", 100.0),
        ("92.5pts", 92.5),
        (88, 88.0),
    ])
    def test_coerce_float(self, value, expected):
        assert coerce_float(value) == expected

    @pytest.mark.parametrize("value", ["abc", "", None, False])
    def test_coerce_float_unparseable_is_nan(self, value):
        assert math.isnan(coerce_float(value))


class TestFieldSpec:
    """Test preparing single field values."""

    def test_text_passthrough(self):
        assert FieldSpec(name="section").prepare("A") == "A"
        assert FieldSpec(name="section").prepare(None) is None

    def test_default_replaces_falsy_value(self):
        spec = FieldSpec(name="reason", default="")
        assert spec.prepare(None) == ""
        assert spec.prepare("sick") == "sick"

    def test_integer_kind_coerces(self):
        spec = FieldSpec(name="gradeLevel", kind=FieldKind.INTEGER)
        assert spec.prepare("5") == 5
        assert math.isnan(spec.prepare("abc"))


class TestEntityDescriptor:
    """Test descriptor helpers."""

    def test_read_fields_include_name_and_tags(self):
        assert STUDENT_DESCRIPTOR.read_fields == [
            "Name", "email", "phone", "gradeLevel", "section",
            "enrollmentDate", "photoUrl", "status", "Tags"
        ]
        assert ATTENDANCE_DESCRIPTOR.read_fields == [
            "Name", "studentId", "date", "status", "reason", "Tags"
        ]

    def test_tags_not_writable(self):
        for descriptor in (STUDENT_DESCRIPTOR, CLASS_DESCRIPTOR, GRADE_DESCRIPTOR, ATTENDANCE_DESCRIPTOR):
            assert "Tags" not in [f.name for f in descriptor.writable_fields]

    def test_numeric_fields(self):
        assert CLASS_DESCRIPTOR.numeric_fields == ["gradeLevel", "capacity"]
        assert GRADE_DESCRIPTOR.numeric_fields == ["score", "maxScore", "studentId"]

    def test_synthesize_name(self):
        assert GRADE_DESCRIPTOR.synthesize_name({"subject": "Math", "gradeType": "Quiz"}) == "Math - Quiz"
        assert ATTENDANCE_DESCRIPTOR.synthesize_name({"date": "2024-01-01"}) == "Attendance - 2024-01-01"
        assert STUDENT_DESCRIPTOR.synthesize_name({"name": "Ada Lovelace"}) == "Ada Lovelace"

    def test_synthesize_name_missing_values_render_empty(self):
        assert GRADE_DESCRIPTOR.synthesize_name({"subject": "Math"}) == "Math - "

    def test_blank_table_rejected(self):
        with pytest.raises(ValueError):
            EntityDescriptor(table=" ", fields=[])


class TestEntityConfigManager:
    """Test the descriptor registry."""

    def test_default_registry(self):
        assert set(entity_config_manager.list_tables()) == {"student", "class", "grade", "attendance"}
        assert entity_config_manager.get("grade") is GRADE_DESCRIPTOR

    def test_register_and_remove(self):
        manager = EntityConfigManager()
        descriptor = EntityDescriptor(table="teacher", fields=[FieldSpec(name="email")])

        manager.register(descriptor)
        assert manager.get("teacher") is descriptor
        assert manager.list_tables() == ["teacher"]

        assert manager.remove("teacher") is True
        assert manager.remove("teacher") is False
        assert manager.get("teacher") is None

    def test_list_descriptors_returns_copy(self):
        manager = EntityConfigManager()
        manager.register(STUDENT_DESCRIPTOR)
        manager.list_descriptors().clear()
        assert manager.get("student") is STUDENT_DESCRIPTOR

    def test_default_descriptors_are_valid(self):
        for table, descriptor in entity_config_manager.list_descriptors().items():
            assert entity_config_manager.validate_descriptor(descriptor) == [], table

    def test_validate_descriptor_errors(self):
        descriptor = EntityDescriptor(
            table="broken",
            fields=[FieldSpec(name="email"), FieldSpec(name="email"), FieldSpec(name="Name")],
            name_template="{nickname}",
            upsert_key=["studentId"],
        )

        errors = EntityConfigManager().validate_descriptor(descriptor)

        assert "Duplicate field: email" in errors
        assert "Name is synthesized and must not be declared as a field" in errors
        assert "Name template references unknown field: nickname" in errors
        assert "Upsert key references unknown field: studentId" in errors


class TestRecordClientProtocol:
    """Test that the shipped clients satisfy the protocol."""

    def test_clients_implement_protocol(self):
        assert isinstance(InMemoryRecordClient(), RecordClientProtocol)
        assert isinstance(ApperClient("project", "key"), RecordClientProtocol)

    def test_plain_object_does_not(self):
        assert not isinstance(object(), RecordClientProtocol)
