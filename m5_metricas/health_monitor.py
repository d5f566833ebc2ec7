"""Herramientas para monitorear la salud del bucle de apuestas en tiempo real."""

from __future__ import annotations

import time
from collections import deque
from dataclasses import asdict, dataclass, field
from typing import Deque, Dict, List

from utils.contratos import Event, EventType


@dataclass
class HealthMetrics:
    actions_success_rate: float = 1.0
    recognition_success_rate: float = 1.0
    capture_failures: int = 0
    skipped_ticks: int = 0
    rounds_recorded: int = 0
    last_health_check: float = field(default_factory=time.time)


class HealthMonitor:
    """Monitoriza métricas clave del bot para detectar comportamientos anómalos."""

    def __init__(self, window: int = 10) -> None:
        self.metrics = HealthMetrics()
        self._recent_actions: Deque[bool] = deque(maxlen=window)
        self._recent_recognitions: Deque[bool] = deque(maxlen=window)

    def __call__(self, event: Event) -> None:
        self.handle_event(event)

    def handle_event(self, event: Event) -> None:
        data = event.data or {}
        if event.event_type is EventType.ACTION_CONFIRMED:
            result = data.get("result")
            self.update_action_result(bool(getattr(result, "ok", False)))
        elif event.event_type is EventType.DICE_READING:
            self.update_recognition(True)
        elif event.event_type is EventType.RECOGNITION_FAILED:
            self.update_recognition(False)
        elif event.event_type is EventType.CAPTURE_FAILED:
            self.metrics.capture_failures += 1
        elif event.event_type is EventType.TICK_SKIPPED:
            self.metrics.skipped_ticks += 1
        elif event.event_type is EventType.BET_OUTCOME:
            self.metrics.rounds_recorded += 1
        else:
            return
        self.metrics.last_health_check = time.time()

    # ------------------------------------------------------------------
    # Actualizaciones de métricas
    # ------------------------------------------------------------------
    def update_action_result(self, success: bool) -> None:
        """Registra el resultado de una secuencia ejecutada por el actuador."""
        self._recent_actions.append(success)
        self.metrics.actions_success_rate = sum(self._recent_actions) / len(self._recent_actions)

    def update_recognition(self, success: bool) -> None:
        self._recent_recognitions.append(success)
        self.metrics.recognition_success_rate = (
            sum(self._recent_recognitions) / len(self._recent_recognitions)
        )
    # ------------------------------------------------------------------
    # Reportes
    # ------------------------------------------------------------------
    def detect_issues(self) -> List[str]:
        metrics = self.metrics
        checks = (
            (metrics.actions_success_rate < 0.7, "Demasiadas secuencias de apuesta fallidas"),
            (metrics.recognition_success_rate < 0.6, "Reconocimiento de dados poco fiable"),
            (metrics.capture_failures > 5, "Fuente de frames inestable"),
            (metrics.skipped_ticks > 5, "Ciclos más lentos que el intervalo de captura"),
        )
        return [message for failed, message in checks if failed]

    def get_health_status(self) -> str:
        issues = self.detect_issues()
        if not issues:
            return "HEALTHY"
        return "WARNING" if len(issues) <= 2 else "CRITICAL"

    def generate_health_report(self) -> Dict[str, object]:
        issues = self.detect_issues()
        return {
            "status": self.get_health_status(),
            "issues": issues,
            "metrics": asdict(self.metrics),
            "timestamp": time.time(),
        }
