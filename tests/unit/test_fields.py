import pytest

from aforo.domain.entities import AforadorStatus, RevisorStatus
from aforo.domain.exceptions import ValidationError
from aforo.domain.fields import (
    FIELDS,
    PROVENANCE_FIELDS,
    STATUS_FIELDS,
    FieldKind,
    FieldSpec,
    coerce,
    editable_spec,
    get_spec,
    initial_status,
)


class TestCatalogue:
    def test_every_status_field_has_provenance(self):
        assert set(STATUS_FIELDS) <= set(PROVENANCE_FIELDS)

    def test_assignment_provenance_pairs(self):
        assert "revisorAsignado" in PROVENANCE_FIELDS
        assert "digitadorAsignado" in PROVENANCE_FIELDS

    def test_attribute_names_are_snake_case(self):
        assert FIELDS["aforadorStatus"].attr == "aforador_status"
        assert FIELDS["totalPosiciones"].attr == "total_posiciones"

    def test_unknown_field_raises(self):
        with pytest.raises(ValidationError, match="campo desconocido"):
            get_spec("noExiste")

    def test_non_editable_field_raises(self):
        with pytest.raises(ValidationError, match="no es editable"):
            editable_spec("incidentReported")

    def test_initial_status(self):
        assert initial_status("aforadorStatus") is AforadorStatus.PENDIENTE


class TestCoerce:
    def test_status_from_string_with_whitespace(self):
        value = coerce(FIELDS["revisorStatus"], " Rechazado ")
        assert value is RevisorStatus.RECHAZADO

    def test_status_wrong_variant(self):
        with pytest.raises(ValidationError, match="no es uno de"):
            coerce(FIELDS["aforadorStatus"], "Terminado")

    def test_bool_rejects_string(self):
        with pytest.raises(ValidationError, match="booleano"):
            coerce(FIELDS["isPatternValidated"], "true")

    def test_count_accepts_integer_float(self):
        assert coerce(FIELDS["totalPosiciones"], 12.0) == 12

    def test_count_rejects_negative(self):
        with pytest.raises(ValidationError, match="negativo"):
            coerce(FIELDS["totalPosiciones"], -3)

    def test_count_rejects_bool(self):
        with pytest.raises(ValidationError):
            coerce(FIELDS["totalPosiciones"], True)

    def test_count_parses_digit_string(self):
        assert coerce(FIELDS["totalPosiciones"], " 7 ") == 7

    def test_text_is_trimmed(self):
        assert coerce(FIELDS["aforador"], "  Jane ") == "Jane"

    def test_text_rejects_none(self):
        with pytest.raises(ValidationError, match="nulo"):
            coerce(FIELDS["aforador"], None)

    def test_note_blank_becomes_none(self):
        assert coerce(FIELDS["aforadorComment"], "   ") is None

    def test_status_spec_without_enum(self):
        spec = FieldSpec(name="raro", attr="raro", kind=FieldKind.STATUS)
        with pytest.raises(ValidationError, match="no es un campo de estado"):
            coerce(spec, "Pendiente")
