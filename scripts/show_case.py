"""Muestra los indicadores de estado y el historial de un caso.

Usage:
    python scripts/show_case.py <config.yaml> <ne>
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from aforo.application.case_repository import CaseRepository
from aforo.application.config import load_config
from aforo.application.projection import CaseStatusQuery
from aforo.domain.exceptions import NotFoundError
from aforo.infrastructure.logging_config import setup_logging
from aforo.infrastructure.store_factory import build_store

BADGE_LABELS = {
    "permits": "Permisos",
    "payments": "Pagos",
    "incident": "Incidencia",
    "value_doubt": "Duda de Valor",
    "previo": "Previo",
}


def main() -> int:
    if len(sys.argv) < 3:
        print("Uso: show_case.py <config.yaml> <ne>")
        return 2
    config = load_config(sys.argv[1])
    setup_logging(
        log_level=config.logging.level,
        log_dir=Path(config.logging.log_dir) if config.logging.log_to_file else None,
    )

    store = build_store(config)
    query = CaseStatusQuery(CaseRepository(store, config.collections))
    try:
        badges = query.badges(sys.argv[2])
        history = query.history(sys.argv[2])
    except NotFoundError as e:
        print(e)
        return 1
    finally:
        close = getattr(store, "close", None)
        if close:
            close()

    for name, complete in badges.visible().items():
        print(f"{BADGE_LABELS[name]}: {'completo' if complete else 'pendiente'}")
    print()
    for entry in history:
        line = f"{entry.updated_at:%d-%m-%Y %H:%M} {entry.updated_by} {entry.field}: "
        line += f"{entry.old_value!r} -> {entry.new_value!r}"
        if entry.comment:
            line += f" ({entry.comment})"
        print(line)
    return 0


if __name__ == "__main__":
    sys.exit(main())
