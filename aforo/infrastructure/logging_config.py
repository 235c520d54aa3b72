from pathlib import Path
from typing import TextIO

import structlog

LOG_FILENAME = "aforo.log"

# Archivo abierto por la última configuración; se cierra al reconfigurar
_log_file: TextIO | None = None


def setup_logging(log_level: str = "INFO", log_dir: Path | None = None) -> None:
    """JSON a ``<log_dir>/aforo.log`` si hay directorio; consola en otro caso."""
    level_map = {"DEBUG": 10, "INFO": 20, "WARNING": 30, "ERROR": 40, "CRITICAL": 50}
    level = level_map.get(log_level.upper(), 20)

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    global _log_file
    if _log_file is not None:
        _log_file.close()
        _log_file = None

    if log_dir:
        log_dir.mkdir(parents=True, exist_ok=True)
        processors.append(structlog.processors.JSONRenderer(ensure_ascii=False))
        _log_file = open(log_dir / LOG_FILENAME, "a", encoding="utf-8")
        logger_factory = structlog.WriteLoggerFactory(file=_log_file)
    else:
        processors.append(structlog.dev.ConsoleRenderer())
        logger_factory = structlog.PrintLoggerFactory()

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=logger_factory,
        cache_logger_on_first_use=True,
    )


def bind_actor(actor_id: str, role: str) -> None:
    """Agrega el actor de la operación en curso al contexto de todos los logs."""
    structlog.contextvars.bind_contextvars(actor_id=actor_id, role=role)
