"""Construye el DocumentStore configurado."""

import structlog

from aforo.application.config import AppConfig
from aforo.application.ports.document_store import DocumentStore
from aforo.infrastructure.firestore_document_store import FirestoreDocumentStore
from aforo.infrastructure.sqlite_document_store import SqliteDocumentStore

logger = structlog.get_logger()


def build_store(config: AppConfig) -> DocumentStore:
    if config.store.backend == "sqlite":
        logger.info("store_selected", backend="sqlite", db_path=config.sqlite.db_path)
        return SqliteDocumentStore(db_path=config.sqlite.db_path)

    logger.info(
        "store_selected",
        backend="firestore",
        project_id=config.firestore.project_id,
        database=config.firestore.database,
    )
    return FirestoreDocumentStore(
        project_id=config.firestore.project_id,
        credentials_path=config.firestore.credentials_path,
        database=config.firestore.database,
    )
