"""Orquestador del bucle captura → reconocimiento → apuesta → gestos.

El ``CaptureCoordinator`` recibe todos sus colaboradores en el constructor
y es el único que los conecta entre sí. Un hilo planificador emite un tick
por intervalo; cada tick lanza como mucho un ciclo en un trabajador
dedicado. Si el ciclo anterior sigue en curso, el tick se descarta.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, Optional

from m1_ingesta.dice_recognizer import DiceRecognizer
from m1_ingesta.frame_source import FrameSource, build_frame_source
from m2_cerebro.betting_engine import BettingEngine
from m4_actuacion.actuator import ActionSequencer
from m4_actuacion.gesture_dispatcher import build_gesture_dispatcher
from m5_metricas.logger import serialize
from utils.configuracion import AppSettings, SettingsProvider
from utils.contratos import (
    ActuationResult,
    BetOutcome,
    CaptureError,
    DiceReading,
    EventType,
    RecognitionFailure,
)
from utils.eventos import EventBus

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class CycleReport:
    status: str
    reading: Optional[DiceReading] = None
    outcome: Optional[BetOutcome] = None
    actuation: Optional[ActuationResult] = None
    detail: str = ""


class CaptureCoordinator:
    """Coordina un ciclo por tick sin solapamientos."""

    def __init__(
        self,
        frame_source: FrameSource,
        recognizer: DiceRecognizer,
        engine: BettingEngine,
        sequencer: ActionSequencer,
        settings: SettingsProvider,
        bus: Optional[EventBus] = None,
    ) -> None:
        self.frame_source = frame_source
        self.recognizer = recognizer
        self.engine = engine
        self.sequencer = sequencer
        self.settings = settings
        self.bus = bus or EventBus()

        self._in_flight = threading.Lock()
        self._lifecycle = threading.Lock()
        self._stop_event = threading.Event()
        self._stop_event.set()
        self._cancel_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._executor: Optional[ThreadPoolExecutor] = None

        self.last_reading: Optional[DiceReading] = None
        self.last_outcome: Optional[BetOutcome] = None
        self.last_actuation: Optional[ActuationResult] = None

        settings.add_listener(self._on_settings_changed)
        self._on_settings_changed(settings.snapshot())

    # ------------------------------------------------------------------
    # Configuración
    # ------------------------------------------------------------------
    def _on_settings_changed(self, settings: AppSettings) -> None:
        state = self.engine.snapshot()
        changes: Dict[str, Any] = {}
        if settings.base_bet_amount != state.base_bet:
            changes["base_bet"] = settings.base_bet_amount
        if settings.max_loss_count != state.max_loss_count:
            changes["max_loss_count"] = settings.max_loss_count
        if settings.selected_color is not state.selected_color:
            changes["selected_color"] = settings.selected_color
        if changes:
            self.engine.update_settings(**changes)
            self.bus.emit(EventType.STATE_UPDATE, state=self.engine.snapshot())

    def update_settings(self, **changes: Any) -> AppSettings:
        return self.settings.update_settings(**changes)

    def reset_statistics(self) -> None:
        state = self.engine.reset_statistics()
        self.bus.emit(EventType.STATE_UPDATE, state=state)

    # ------------------------------------------------------------------
    # Ciclo de vida
    # ------------------------------------------------------------------
    @property
    def running(self) -> bool:
        return not self._stop_event.is_set()

    def start(self) -> bool:
        """Arranca motor y planificador. Devuelve False si ya estaba en marcha."""

        with self._lifecycle:
            if self.running:
                return False

            snapshot = self.settings.snapshot()
            if snapshot.capture_region is None:
                raise ValueError("Configura la región de captura antes de iniciar")
            if snapshot.betting_region is None:
                raise ValueError("Configura los botones de apuesta antes de iniciar")
            state = self.engine.start()

            stop_event = threading.Event()
            self._stop_event = stop_event
            self._cancel_event = threading.Event()
            executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="dice-cycle")
            self._executor = executor
            thread = threading.Thread(
                target=self._run_scheduler,
                args=(stop_event, executor),
                name="dice-scheduler",
                daemon=True,
            )
            self._thread = thread

            self.bus.emit(EventType.LOOP_STARTED, state=state)
            if snapshot.place_opening_bet:
                self._submit(self._opening_bet)
            thread.start()
        return True

    def stop(self, wait: bool = False, timeout: Optional[float] = None) -> None:
        """Detiene los ticks y pide a la secuencia en curso que aborte."""

        with self._lifecycle:
            thread = self._thread
            self._stop_event.set()
            self._cancel_event.set()

        self.engine.stop()
        self.bus.emit(EventType.STATE_UPDATE, state=self.engine.snapshot())
        if wait and thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def _run_scheduler(self, stop_event: threading.Event, executor: ThreadPoolExecutor) -> None:
        LOGGER.info("Planificador iniciado")
        try:
            while not stop_event.is_set():
                self.tick()
                interval = self.settings.snapshot().check_interval_ms / 1000.0
                if stop_event.wait(interval):
                    break
        finally:
            # El ciclo en curso termina por su cuenta; no se aceptan más
            executor.shutdown(wait=True)
            LOGGER.info("Planificador detenido")
            self.bus.emit(EventType.LOOP_STOPPED, state=self.engine.snapshot())

    # ------------------------------------------------------------------
    # Ticks y ciclos
    # ------------------------------------------------------------------
    def tick(self) -> bool:
        """Lanza un ciclo en el trabajador; False si se descartó el tick."""

        return self._submit(self._cycle)

    def _submit(self, work) -> bool:
        if not self._in_flight.acquire(blocking=False):
            LOGGER.debug("Ciclo anterior en curso; se descarta el tick")
            self.bus.emit(EventType.TICK_SKIPPED)
            return False

        executor = self._executor
        if executor is None:
            self._in_flight.release()
            return False

        def locked_work():
            try:
                return work()
            finally:
                self._in_flight.release()

        try:
            executor.submit(locked_work)
        except RuntimeError:
            # El trabajador ya fue cerrado por un stop concurrente
            self._in_flight.release()
            return False
        return True

    def run_cycle(self) -> CycleReport:
        """Ejecuta un ciclo completo en el hilo llamante."""

        if not self._in_flight.acquire(blocking=False):
            self.bus.emit(EventType.TICK_SKIPPED)
            return CycleReport(status="skipped")
        try:
            return self._cycle()
        finally:
            self._in_flight.release()

    def _cycle(self) -> CycleReport:
        try:
            return self._analyze_and_act()
        except Exception as exc:
            LOGGER.exception("Error inesperado en el ciclo de captura")
            return CycleReport(status="error", detail=str(exc))

    def _analyze_and_act(self) -> CycleReport:
        settings = self.settings.snapshot()
        region = settings.capture_region
        if region is None:
            LOGGER.warning("Sin región de captura configurada")
            return CycleReport(status="no_region")

        try:
            frame = self.frame_source.capture(region)
        except CaptureError as exc:
            LOGGER.warning("Captura fallida: %s", exc)
            self.bus.emit(EventType.CAPTURE_FAILED, error=str(exc))
            return CycleReport(status="capture_failed", detail=str(exc))

        result = self.recognizer.recognize(frame.crop(region))
        del frame

        if isinstance(result, RecognitionFailure):
            self.bus.emit(
                EventType.RECOGNITION_FAILED,
                reason=result.reason,
                left_color=result.left_color,
                right_color=result.right_color,
            )
            return CycleReport(status="recognition_failed", detail=result.reason)

        reading = result
        self.last_reading = reading
        self.bus.emit(EventType.DICE_READING, reading=reading)

        round_result = self.engine.on_reading(reading, settings.betting_region)
        if round_result is None:
            return CycleReport(status="inactive", reading=reading)

        self.last_outcome = round_result.outcome
        self.bus.emit(EventType.BET_OUTCOME, outcome=round_result.outcome)
        self.bus.emit(EventType.STATE_UPDATE, state=round_result.state)

        if not round_result.state.is_active:
            LOGGER.warning("Tope de pérdidas alcanzado; el bucle se detiene")
            self._stop_event.set()
            self.bus.emit(EventType.MAX_LOSS_REACHED, state=round_result.state)
            return CycleReport(status="max_loss", reading=reading, outcome=round_result.outcome)

        instruction = round_result.instruction
        if instruction is None:
            return CycleReport(status="no_instruction", reading=reading, outcome=round_result.outcome)

        actuation = self._actuate(instruction, settings)
        return CycleReport(
            status="actuated" if actuation.ok else "actuation_failed",
            reading=reading,
            outcome=round_result.outcome,
            actuation=actuation,
        )

    def _actuate(self, instruction, settings: AppSettings) -> ActuationResult:
        self.bus.emit(EventType.WAGER_INSTRUCTION, instruction=instruction)
        actuation = self.sequencer.execute(
            instruction, self._cancel_event, chip_layout=settings.chip_layout
        )
        self.last_actuation = actuation
        self.bus.emit(EventType.ACTION_CONFIRMED, result=actuation)
        if not actuation.ok:
            LOGGER.error("Fallo de actuación: %s", actuation.error)
        return actuation

    def _opening_bet(self) -> Optional[ActuationResult]:
        try:
            settings = self.settings.snapshot()
            instruction = self.engine.next_instruction(settings.betting_region)
            if instruction is None:
                return None
            return self._actuate(instruction, settings)
        except Exception:
            LOGGER.exception("Error colocando la apuesta inicial")
            return None

    # ------------------------------------------------------------------
    # Reportes
    # ------------------------------------------------------------------
    def get_status(self) -> Dict[str, Any]:
        state = self.engine.snapshot()
        status: Dict[str, Any] = {
            "running": self.running,
            "phase": self.engine.phase.value,
            "state": serialize(state),
            "last_reading": serialize(self.last_reading),
            "last_outcome": serialize(self.last_outcome),
            "last_actuation": serialize(self.last_actuation),
            "settings": self.settings.snapshot().to_dict(),
        }
        return status


def build_coordinator(settings: AppSettings, bus: Optional[EventBus] = None) -> CaptureCoordinator:
    """Construye el bucle completo con los backends indicados en la configuración."""

    frame_source = build_frame_source(
        settings.frame_source,
        monitor_index=settings.monitor_index,
        serial=settings.adb_serial,
    )
    dispatcher = build_gesture_dispatcher(
        settings.gesture_backend,
        serial=settings.adb_serial,
        timeout_ms=settings.gesture_timeout_ms,
    )
    return CaptureCoordinator(
        frame_source=frame_source,
        recognizer=DiceRecognizer(),
        engine=BettingEngine(),
        sequencer=ActionSequencer(dispatcher, settings.chip_layout),
        settings=SettingsProvider(settings),
        bus=bus,
    )
