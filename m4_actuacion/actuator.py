"""Secuenciador de acciones (M4): convierte una instrucción de apuesta en gestos."""

from __future__ import annotations

import logging
import threading
import time
from typing import List, Optional, Tuple

from utils.configuracion import AppSettings, ChipLayout
from utils.contratos import ActuationResult, Point, WagerInstruction

from .gesture_dispatcher import GestureDispatcher

LOGGER = logging.getLogger(__name__)

STEP_DELAY_S = 0.5
REPEAT_DELAY_S = 0.2
TAP_DURATION_MS = 100


def select_denomination(amount: int, denominations: List[int]) -> int:
    """Ficha más pequeña que cubre el monto; la mayor si ninguna lo cubre."""

    ladder = sorted(denominations)
    for value in ladder:
        if amount <= value:
            return value
    return ladder[-1]


class ActionSequencer:
    """Ejecuta color → monto → confirmar, abortando al primer paso fallido.

    No hay reintentos ni deshacer: una secuencia a medias puede dejar la
    aplicación objetivo en un estado no deseado y así se reporta.
    """

    def __init__(
        self,
        dispatcher: GestureDispatcher,
        chip_layout: Optional[ChipLayout] = None,
        *,
        step_delay: float = STEP_DELAY_S,
        repeat_delay: float = REPEAT_DELAY_S,
        tap_duration_ms: int = TAP_DURATION_MS,
    ) -> None:
        self.dispatcher = dispatcher
        self.chip_layout = chip_layout or AppSettings().chip_layout
        self.step_delay = step_delay
        self.repeat_delay = repeat_delay
        self.tap_duration_ms = tap_duration_ms
        self._running = threading.Lock()

    # ------------------------------------------------------------------
    # Planificación del monto
    # ------------------------------------------------------------------
    def plan_amount(
        self, amount: int, chip_layout: Optional[ChipLayout] = None
    ) -> List[Tuple[Point, float]]:
        """Lista de toques (punto, pausa posterior) para marcar ``amount``."""

        layout = chip_layout or self.chip_layout
        top = max(layout.denominations)
        if amount <= top:
            chip = select_denomination(amount, layout.denominations)
            return [(layout.chips[chip], 0.0)]

        plan: List[Tuple[Point, float]] = [(layout.chips[top], self.step_delay)]
        doublings = amount // top - 1
        plan.extend((layout.double_button, self.repeat_delay) for _ in range(doublings))
        return plan

    # ------------------------------------------------------------------
    # Ejecución
    # ------------------------------------------------------------------
    def execute(
        self,
        instruction: WagerInstruction,
        cancel_event: Optional[threading.Event] = None,
        chip_layout: Optional[ChipLayout] = None,
    ) -> ActuationResult:
        """Ejecuta la secuencia; ``chip_layout`` sustituye a la escalera por defecto."""

        if not self._running.acquire(blocking=False):
            return ActuationResult(ok=False, latency_ms=0.0, error="Ya hay una secuencia en curso")
        try:
            return self._execute(
                instruction, cancel_event or threading.Event(), chip_layout or self.chip_layout
            )
        finally:
            self._running.release()

    def _execute(
        self, instruction: WagerInstruction, cancel: threading.Event, chip_layout: ChipLayout
    ) -> ActuationResult:
        start_time = time.time()
        steps = 0

        def finish(ok: bool, reason: str = "", error: Optional[str] = None, cancelled: bool = False):
            result = ActuationResult(
                ok=ok,
                latency_ms=(time.time() - start_time) * 1000,
                steps_executed=steps,
                reason=reason,
                error=error,
                cancelled=cancelled,
            )
            if not ok:
                LOGGER.error("Secuencia de apuesta abortada tras %d pasos: %s", steps, error)
            return result

        LOGGER.info(
            "Apostando %d a %s", instruction.amount, instruction.color.value
        )

        # 1. Color
        if cancel.is_set():
            return finish(False, error="Cancelada antes de empezar", cancelled=True)
        if not self._tap(instruction.color_button):
            return finish(False, error="No se pudo seleccionar el color")
        steps += 1
        if self._pause(self.step_delay, cancel):
            return finish(False, error="Cancelada tras seleccionar el color", cancelled=True)

        # 2. Monto
        for point, delay in self.plan_amount(instruction.amount, chip_layout):
            if cancel.is_set():
                return finish(False, error="Cancelada durante la selección del monto", cancelled=True)
            if not self._tap(point):
                return finish(False, error=f"No se pudo seleccionar el monto en {point}")
            steps += 1
            if delay and self._pause(delay, cancel):
                return finish(False, error="Cancelada durante la selección del monto", cancelled=True)

        if self._pause(self.step_delay, cancel):
            return finish(False, error="Cancelada antes de confirmar", cancelled=True)

        # 3. Confirmar
        if not self._tap(instruction.bet_button):
            return finish(False, error="No se pudo pulsar el botón de apuesta")
        steps += 1

        return finish(True, reason=f"Apuesta de {instruction.amount} colocada en {steps} pasos")

    def _tap(self, point: Point) -> bool:
        x, y = point
        try:
            return bool(self.dispatcher.tap(x, y, self.tap_duration_ms))
        except Exception:
            LOGGER.exception("El despachador de gestos lanzó una excepción en (%d, %d)", x, y)
            return False

    @staticmethod
    def _pause(seconds: float, cancel: threading.Event) -> bool:
        """Espera entre pasos; devuelve True si se pidió cancelar."""

        if seconds <= 0:
            return cancel.is_set()
        return cancel.wait(seconds)
