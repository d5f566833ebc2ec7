"""Registro de eventos de sesión del bot de dados (Módulo 5)."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import asdict, is_dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict

from utils.contratos import Event

LOGGER = logging.getLogger(__name__)


def serialize(value: Any) -> Any:
    """Convierte enums, dataclasses y rutas a tipos compatibles con JSON."""

    if isinstance(value, Enum):
        return value.value

    if is_dataclass(value):
        return {key: serialize(getattr(value, key)) for key in value.__dataclass_fields__}

    if isinstance(value, dict):
        return {str(key): serialize(field) for key, field in value.items()}

    if isinstance(value, (list, tuple, set)):
        return [serialize(item) for item in value]

    if isinstance(value, Path):
        return str(value)

    return value


def event_to_dict(event: Event) -> Dict[str, Any]:
    return {
        "timestamp": event.timestamp,
        "event_type": event.event_type.value,
        "data": serialize(event.data or {}),
    }


class EventLogger:
    """Registra eventos en archivos ``.jsonl`` organizados por sesión.

    Se suscribe al ``EventBus`` como un observador más: ``bus.subscribe(logger)``.
    """

    def __init__(self, log_dir: str | Path = "logs/") -> None:
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)

        session_timestamp = time.strftime("%Y%m%d-%H%M%S")
        self.log_file = self.log_dir / f"session_{session_timestamp}.jsonl"
        LOGGER.info("Registrando eventos en: %s", self.log_file)

    def __call__(self, event: Event) -> None:
        self.log(event)

    def log(self, event: Any) -> None:
        """Añade un evento al archivo de registro."""

        try:
            event_payload = self._prepare_event(event)
            with self.log_file.open("a", encoding="utf-8") as handler:
                json.dump(event_payload, handler, ensure_ascii=False)
                handler.write("\n")
        except (OSError, TypeError, ValueError) as exc:
            LOGGER.error("Error al escribir en el log de sesión: %s", exc)

    def _prepare_event(self, event: Any) -> Dict[str, Any]:
        if isinstance(event, Event):
            return event_to_dict(event)

        if is_dataclass(event):
            event_dict = asdict(event)
        elif isinstance(event, dict):
            event_dict = dict(event)
        else:
            raise TypeError(
                "EventLogger.log solo acepta eventos, dataclasses o diccionarios."
            )

        serialized = {key: serialize(value) for key, value in event_dict.items()}
        # Asegurar la presencia de timestamp
        serialized.setdefault("timestamp", time.time())
        return serialized


__all__ = ["EventLogger", "event_to_dict", "serialize"]
