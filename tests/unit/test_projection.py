import pytest

from aforo.application.dtos import StatusBadges
from aforo.application.projection import CaseStatusQuery, compute_badges
from aforo.application.records import ExamenPrevio, PaymentRequest, RequiredPermit, Worksheet
from aforo.domain.entities import AforoCase, ReviewDecision
from aforo.domain.exceptions import NotFoundError
from tests.conftest import START, make_case_doc


def _make_case(**kwargs) -> AforoCase:
    defaults = {"ne": "NE-001", "worksheet_id": "NE-001"}
    defaults.update(kwargs)
    return AforoCase(**defaults)


def _make_worksheet(*statuses: str) -> Worksheet:
    permits = [
        RequiredPermit(id=f"p{i}", name=f"Permiso {i}", status=status)
        for i, status in enumerate(statuses)
    ]
    return Worksheet(ne="NE-001", required_permits=permits)


class TestComputeBadges:
    def test_nothing_applies(self):
        badges = compute_badges(_make_case(worksheet_id=None), None, [], None)
        assert badges == StatusBadges()
        assert badges.visible() == {}

    def test_permits_all_delivered(self):
        badges = compute_badges(_make_case(), _make_worksheet("Entregado", "Entregado"), [], None)
        assert badges.permits is True

    def test_permits_one_pending(self):
        badges = compute_badges(_make_case(), _make_worksheet("Entregado", "En Trámite"), [], None)
        assert badges.permits is False

    def test_worksheet_without_permits_hides_badge(self):
        badges = compute_badges(_make_case(), _make_worksheet(), [], None)
        assert badges.permits is None

    def test_payments(self):
        paid = PaymentRequest(exam_ne="NE-001", payment_status="Pagado")
        pending = PaymentRequest(exam_ne="NE-001", payment_status=None)
        assert compute_badges(_make_case(), None, [paid], None).payments is True
        assert compute_badges(_make_case(), None, [paid, pending], None).payments is False

    @pytest.mark.parametrize(
        ("status", "expected"),
        [
            (ReviewDecision.PENDIENTE, False),
            (ReviewDecision.RECHAZADA, False),
            (ReviewDecision.APROBADA, True),
        ],
    )
    def test_incident(self, status, expected):
        case = _make_case(incident_reported=True, incident_type="Rectificacion", incident_status=status)
        assert compute_badges(case, None, [], None).incident is expected

    def test_incident_hidden_when_not_reported(self):
        assert compute_badges(_make_case(), None, [], None).incident is None

    def test_value_doubt_complete_once_decided(self):
        open_case = _make_case(has_value_doubt=True)
        decided = _make_case(has_value_doubt=True, value_doubt_status=ReviewDecision.RECHAZADA)
        assert compute_badges(open_case, None, [], None).value_doubt is False
        assert compute_badges(decided, None, [], None).value_doubt is True

    def test_previo(self):
        case = _make_case()
        assert compute_badges(case, None, [], None).previo is False
        assert compute_badges(case, None, [], ExamenPrevio(status="incomplete")).previo is False
        assert compute_badges(case, None, [], ExamenPrevio(status="complete")).previo is True

    def test_visible_skips_non_applicable(self):
        badges = StatusBadges(permits=True, previo=False)
        assert badges.visible() == {"permits": True, "previo": False}


class TestCaseStatusQuery:
    @pytest.fixture
    def query(self, repository) -> CaseStatusQuery:
        return CaseStatusQuery(repository)

    def test_badges_reads_linked_documents(self, query, store, seed_case):
        seed_case()
        store.seed(
            "worksheets/NE-001",
            {"ne": "NE-001", "requiredPermits": [{"id": "p1", "name": "MAG", "status": "Entregado"}]},
        )
        store.seed("SolicitudCheques/c1", {"examNe": "NE-001", "paymentStatus": "Pagado"})
        store.seed("SolicitudCheques/c2", {"examNe": "NE-999", "paymentStatus": None})
        store.seed("examenesPrevios/NE-001", {"ne": "NE-001", "status": "complete"})

        badges = query.badges("ne-001")

        assert badges.visible() == {"permits": True, "payments": True, "previo": True}

    def test_badges_unknown_case(self, query):
        with pytest.raises(NotFoundError):
            query.badges("NE-404")

    def test_history_newest_first(self, query, store, seed_case):
        seed_case()
        updates = "AforoCases/NE-001/actualizaciones"
        store.seed(f"{updates}/a", {"updatedAt": START, "updatedBy": "X", "field": "merchandise"})
        store.seed(
            f"{updates}/b",
            {"updatedAt": START.replace(hour=15), "updatedBy": "Y", "field": "aforador"},
        )

        history = query.history("NE-001")

        assert [e.field for e in history] == ["aforador", "merchandise"]

    def test_history_mixes_legacy_naive_timestamps(self, query, store, seed_case):
        seed_case()
        updates = "AforoCases/NE-001/actualizaciones"
        store.seed(
            f"{updates}/viejo",
            {"updatedAt": "2024-01-01T10:00:00", "updatedBy": "X", "field": "merchandise"},
        )
        store.seed(f"{updates}/nuevo", {"updatedAt": START, "updatedBy": "Y", "field": "aforador"})

        history = query.history("NE-001")

        assert [e.field for e in history] == ["aforador", "merchandise"]

    def test_history_same_batch_ordered_by_seq(self, query, store, seed_case):
        seed_case()
        updates = "AforoCases/NE-001/actualizaciones"
        for doc_id, field_name, seq in [
            ("a", "declaracionAduanera", 0),
            ("b", "digitacionStatus", 1),
        ]:
            store.seed(
                f"{updates}/{doc_id}",
                {"updatedAt": START, "updatedBy": "Y", "field": field_name, "seq": seq},
            )

        history = query.history("NE-001")

        assert [e.field for e in history] == ["digitacionStatus", "declaracionAduanera"]

    def test_history_unknown_case(self, query):
        with pytest.raises(NotFoundError):
            query.history("NE-404")

    def test_pending_incidents(self, query, store):
        store.seed(
            "AforoCases/NE-001",
            make_case_doc("NE-001", incidentReported=True, revisorAsignado="Ana"),
        )
        store.seed(
            "AforoCases/NE-002",
            make_case_doc("NE-002", incidentReported=True, incidentStatus="Aprobada"),
        )
        store.seed("AforoCases/NE-003", make_case_doc("NE-003"))
        store.seed(
            "AforoCases/NE-004",
            make_case_doc("NE-004", incidentReported=True, revisorAsignado="Luis"),
        )

        assert [c.ne for c in query.pending_incidents()] == ["NE-001", "NE-004"]
        assert [c.ne for c in query.pending_incidents(revisor="Ana")] == ["NE-001"]

    def test_digitization_queue(self, query, store):
        store.seed("AforoCases/NE-001", make_case_doc("NE-001"))
        store.seed(
            "AforoCases/NE-002",
            make_case_doc("NE-002", digitacionStatus="Pendiente de Digitación"),
        )
        store.seed("AforoCases/NE-003", make_case_doc("NE-003", digitacionStatus="Almacenado"))
        store.seed(
            "AforoCases/NE-004", make_case_doc("NE-004", digitacionStatus="Trámite Completo")
        )

        assert [c.ne for c in query.digitization_queue()] == ["NE-002", "NE-003"]
