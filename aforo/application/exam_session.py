"""
Sesión de examen previo: cabecera y productos en memoria.

Las operaciones sobre productos solo modifican la sesión. La persistencia
ocurre únicamente con ``soft_save`` o ``finalize``. En modo recuperación
cada operación encola un evento de auditoría que se escribe en
``examenesRecuperados`` en el mismo lote que el examen.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

import structlog

from aforo.application.config import CollectionsConfig
from aforo.application.guard import Clock, utc_now
from aforo.application.ports.document_store import DocumentStore
from aforo.application.records import EXAM_COMPLETE, EXAM_INCOMPLETE, Product, parse_record
from aforo.domain.exceptions import NotFoundError, ValidationError, WriteError
from aforo.domain.value_objects import Actor

logger = structlog.get_logger()

PRODUCT_ADDED = "product_added"
PRODUCT_UPDATED = "product_updated"
PRODUCT_DELETED = "product_deleted"


@dataclass
class ExamSession:
    ne: str
    manager: str = ""
    location: str = ""
    consignee: str = ""
    reference: Optional[str] = None
    recovery_mode: bool = False
    products: list[Product] = field(default_factory=list)
    collections: CollectionsConfig = field(default_factory=CollectionsConfig)
    clock: Clock = utc_now
    pending_events: list[dict[str, Any]] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.ne = (self.ne or "").strip().upper()
        if not self.ne:
            raise ValidationError("ne", "el NE es requerido")

    @classmethod
    def resume(
        cls,
        store: DocumentStore,
        ne: str,
        collections: CollectionsConfig | None = None,
        clock: Clock = utc_now,
    ) -> "ExamSession":
        """Retoma un examen guardado en modo recuperación."""
        collections = collections or CollectionsConfig()
        exam_id = ne.strip().upper()
        data = store.get_document(f"{collections.previous_exams}/{exam_id}")
        if data is None:
            raise NotFoundError(exam_id, what="Examen previo")
        return cls(
            ne=exam_id,
            manager=data.get("manager") or "",
            location=data.get("location") or "",
            consignee=data.get("consignee") or "",
            reference=data.get("reference"),
            recovery_mode=True,
            products=[parse_record(Product, p) for p in data.get("products") or []],
            collections=collections,
            clock=clock,
        )

    @property
    def exam_path(self) -> str:
        return f"{self.collections.previous_exams}/{self.ne}"

    def add_product(self, data: Product | dict[str, Any], actor: Actor) -> Product:
        raw = data.to_document() if isinstance(data, Product) else dict(data)
        product = parse_record(Product, {**raw, "id": uuid.uuid4().hex})
        self.products.append(product)
        self._queue(PRODUCT_ADDED, actor, product.id, new_data=product.to_document())
        return product

    def update_product(self, product: Product | dict[str, Any], actor: Actor) -> Product:
        product = parse_record(Product, product)
        index = self._index_of(product.id)
        previous = self.products[index]
        self.products[index] = product
        self._queue(
            PRODUCT_UPDATED,
            actor,
            product.id,
            previous_data=previous.to_document(),
            new_data=product.to_document(),
        )
        return product

    def delete_product(self, product_id: str, actor: Actor) -> Product:
        previous = self.products.pop(self._index_of(product_id))
        self._queue(PRODUCT_DELETED, actor, product_id, previous_data=previous.to_document())
        return previous

    def soft_save(self, store: DocumentStore, actor: Actor) -> None:
        """Guardado parcial: merge del examen con status 'incomplete'."""
        self._persist(store, actor, {"status": EXAM_INCOMPLETE, "lastUpdated": self.clock()})
        logger.info("exam_soft_saved", ne=self.ne, products=len(self.products))

    def finalize(self, store: DocumentStore, actor: Actor) -> None:
        now = self.clock()
        self._persist(
            store, actor, {"status": EXAM_COMPLETE, "lastUpdated": now, "completedAt": now}
        )
        logger.info("exam_finalized", ne=self.ne, products=len(self.products))

    def _persist(self, store: DocumentStore, actor: Actor, extra: dict[str, Any]) -> None:
        batch = store.begin_batch()
        batch.upsert(
            self.exam_path,
            {
                "ne": self.ne,
                "reference": self.reference,
                "manager": self.manager,
                "location": self.location,
                "consignee": self.consignee,
                "products": [p.to_document() for p in self.products],
                "savedBy": actor.actor_id,
                **extra,
            },
        )
        for event in self.pending_events:
            batch.create(f"{self.collections.recovered_exams}/{uuid.uuid4().hex}", event)
        try:
            batch.commit()
        except WriteError as e:
            # Los eventos quedan en cola para el siguiente intento
            logger.error("exam_save_failed", ne=self.ne, error=e.reason)
            raise
        self.pending_events.clear()

    def _index_of(self, product_id: str) -> int:
        for index, product in enumerate(self.products):
            if product.id == product_id:
                return index
        raise NotFoundError(product_id, what="Producto")

    def _queue(
        self,
        action: str,
        actor: Actor,
        product_id: str,
        previous_data: Optional[dict[str, Any]] = None,
        new_data: Optional[dict[str, Any]] = None,
    ) -> None:
        if not self.recovery_mode:
            return
        details: dict[str, Any] = {"productId": product_id}
        if previous_data is not None:
            details["previousData"] = previous_data
        if new_data is not None:
            details["newData"] = new_data
        changed_at: datetime = self.clock()
        self.pending_events.append(
            {
                "examNe": self.ne,
                "action": action,
                "changedBy": actor.actor_id,
                "changedAt": changed_at,
                "details": details,
            }
        )
