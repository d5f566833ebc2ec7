"""Canal de eventos entre el núcleo y sus observadores."""

from __future__ import annotations

import logging
import threading
from typing import Callable, List

from utils.contratos import Event, EventType

LOGGER = logging.getLogger(__name__)

Observer = Callable[[Event], None]


class EventBus:
    """Entrega síncrona de eventos en el orden de suscripción.

    Los observadores reciben proyecciones de solo lectura. Un observador que
    lanza una excepción se registra en el log y no interrumpe la entrega a
    los demás ni el bucle de control.
    """

    def __init__(self) -> None:
        self._observers: List[Observer] = []
        self._lock = threading.Lock()

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        with self._lock:
            self._observers.append(observer)

        def unsubscribe() -> None:
            with self._lock:
                if observer in self._observers:
                    self._observers.remove(observer)

        return unsubscribe

    def publish(self, event: Event) -> None:
        with self._lock:
            observers = list(self._observers)

        for observer in observers:
            try:
                observer(event)
            except Exception:
                LOGGER.exception(
                    "Observador %r falló procesando %s", observer, event.event_type.value
                )

    def emit(self, event_type: EventType, **data) -> Event:
        event = Event.create(event_type, **data)
        self.publish(event)
        return event
