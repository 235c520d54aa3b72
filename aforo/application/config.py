"""Configuración de la aplicación cargada desde YAML."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

BACKENDS = ("firestore", "sqlite")


@dataclass(frozen=True)
class StoreConfig:
    backend: str = "firestore"


@dataclass(frozen=True)
class FirestoreConfig:
    project_id: str = ""
    credentials_path: str = ""
    database: str = "(default)"


@dataclass(frozen=True)
class SqliteConfig:
    db_path: str = "data/aforo_store.db"


@dataclass(frozen=True)
class CollectionsConfig:
    cases: str = "AforoCases"
    updates: str = "actualizaciones"
    worksheets: str = "worksheets"
    payment_requests: str = "SolicitudCheques"
    previous_exams: str = "examenesPrevios"
    recovered_exams: str = "examenesRecuperados"


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    log_to_file: bool = True
    log_dir: str = "logs"


@dataclass(frozen=True)
class AppConfig:
    store: StoreConfig
    firestore: FirestoreConfig
    sqlite: SqliteConfig
    collections: CollectionsConfig
    logging: LoggingConfig


def load_config(config_path: str | Path) -> AppConfig:
    """Carga y valida la configuración desde un archivo YAML."""
    path = Path(config_path).resolve()
    if not path.exists():
        msg = f"Archivo de configuración no encontrado: {path}"
        raise FileNotFoundError(msg)

    with open(path, encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    if not isinstance(raw, dict):
        msg = f"YAML inválido: se esperaba dict, se obtuvo {type(raw).__name__}"
        raise ValueError(msg)

    _validate_required_keys(raw)
    store = _build_store_config(raw.get("store") or {})

    return AppConfig(
        store=store,
        firestore=_build_firestore_config(raw.get("firestore") or {}, store.backend),
        sqlite=SqliteConfig(**(raw.get("sqlite") or {})),
        collections=CollectionsConfig(**(raw.get("collections") or {})),
        logging=LoggingConfig(**(raw.get("logging") or {})),
    )


def _validate_required_keys(raw: dict[str, Any]) -> None:
    """Valida que las secciones requeridas existan en el YAML."""
    required = {"store"}
    missing = required - set(raw.keys())
    if missing:
        msg = f"Secciones requeridas faltantes en YAML: {sorted(missing)}"
        raise ValueError(msg)


def _build_store_config(data: dict[str, Any]) -> StoreConfig:
    config = StoreConfig(**data)
    if config.backend not in BACKENDS:
        msg = f"store.backend debe ser uno de {list(BACKENDS)}, se obtuvo '{config.backend}'"
        raise ValueError(msg)
    return config


def _build_firestore_config(data: dict[str, Any], backend: str) -> FirestoreConfig:
    """Con backend firestore, project_id y credentials_path son obligatorios."""
    if backend == "firestore":
        for key in ("project_id", "credentials_path"):
            if not data.get(key):
                msg = f"firestore.{key} es requerido"
                raise ValueError(msg)
    return FirestoreConfig(**data)
