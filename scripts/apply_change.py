"""Aplica un cambio guardado sobre un caso de aforo.

Usage:
    python scripts/apply_change.py <config.yaml> <ne> <campo> <valor> <actor> <rol> [comentario]

Solo los campos booleanos y numéricos interpretan el valor como YAML ("true", "12");
los de texto lo guardan tal cual.
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import structlog
import yaml

from aforo.application.case_repository import CaseRepository
from aforo.application.config import load_config
from aforo.application.guard import TransitionGuard
from aforo.domain.exceptions import AforoError, PreconditionError, WriteError
from aforo.domain.fields import FieldKind, get_spec
from aforo.domain.value_objects import Actor
from aforo.infrastructure.logging_config import bind_actor, setup_logging
from aforo.infrastructure.store_factory import build_store

USAGE = "Uso: apply_change.py <config.yaml> <ne> <campo> <valor> <actor> <rol> [comentario]"

# Solo estos tipos se interpretan como YAML; el resto se pasa como texto tal cual
_YAML_KINDS = (FieldKind.BOOL, FieldKind.COUNT)


def parse_cli_value(field_name: str, raw_value: str) -> object:
    """"12" es entero solo para totalPosiciones; en un campo de texto sigue siendo "12"."""
    if get_spec(field_name).kind in _YAML_KINDS:
        return yaml.safe_load(raw_value)
    return raw_value


def main() -> int:
    if len(sys.argv) < 7:
        print(USAGE)
        return 2
    config_path, ne, field_name, raw_value, actor_name, role = sys.argv[1:7]
    comment = sys.argv[7] if len(sys.argv) > 7 else None

    config = load_config(config_path)
    setup_logging(
        log_level=config.logging.level,
        log_dir=Path(config.logging.log_dir) if config.logging.log_to_file else None,
    )
    logger = structlog.get_logger()

    try:
        actor = Actor(actor_id=actor_name, display_name=actor_name, role=role)
    except ValueError as e:
        print(f"Error: {e}")
        return 2
    bind_actor(actor.actor_id, actor.role.value)

    store = build_store(config)
    guard = TransitionGuard(store, repository=CaseRepository(store, config.collections))

    try:
        result = guard.apply_field_change(
            ne, field_name, parse_cli_value(field_name, raw_value), actor, comment
        )
    except PreconditionError as e:
        print(f"Rechazado: {e.reason}")
        return 1
    except WriteError as e:
        print(f"{e} (puede reintentar)")
        return 3
    except AforoError as e:
        print(f"Error: {e}")
        return 1
    finally:
        close = getattr(store, "close", None)
        if close:
            close()

    if not result.applied:
        print(f"Sin cambios: {field_name} ya tenía ese valor en {result.case_id}")
    else:
        for entry in result.entries:
            print(f"{entry.field}: {entry.old_value!r} -> {entry.new_value!r}")
    logger.info("apply_change_finished", case_id=result.case_id, applied=result.applied)
    return 0


if __name__ == "__main__":
    sys.exit(main())
