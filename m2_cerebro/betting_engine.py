"""Motor de apuestas martingala (Módulo 2).

Máquina de estados que consume lecturas de dados, calcula el resultado de
la ronda y actualiza la apuesta: se dobla tras cada pérdida y vuelve a la
base tras una victoria, con un tope de pérdidas consecutivas que detiene la
sesión automáticamente.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Optional

from utils.configuracion import BettingRegion
from utils.contratos import (
    BetOutcome,
    BettingState,
    DiceColor,
    DiceReading,
    WagerInstruction,
)

LOGGER = logging.getLogger(__name__)

WIN_COEFFICIENT = 2.28


class EnginePhase(Enum):
    IDLE = "idle"
    ACTIVE = "active"
    STOPPED = "stopped"


@dataclass(frozen=True)
class RoundResult:
    outcome: BetOutcome
    instruction: Optional[WagerInstruction]
    state: BettingState


def evaluate_round(reading: DiceReading, state: BettingState) -> BetOutcome:
    """Calcula el resultado de la ronda para el color seleccionado.

    Un empate cuenta siempre como pérdida, sea cual sea el color elegido.
    """

    is_draw = reading.red_pips == reading.orange_pips
    if is_draw:
        won = False
    elif state.selected_color is DiceColor.RED:
        won = reading.red_pips > reading.orange_pips
    elif state.selected_color is DiceColor.ORANGE:
        won = reading.orange_pips > reading.red_pips
    else:
        won = False

    amount = state.current_bet
    profit = int(amount * (WIN_COEFFICIENT - 1)) if won else -amount
    return BetOutcome(won=won, is_draw=is_draw, amount=amount, profit=profit)


class BettingEngine:
    """Dueño exclusivo del ``BettingState``; el resto del sistema solo lo lee."""

    def __init__(self, state: Optional[BettingState] = None) -> None:
        self._state = state or BettingState()
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Lectura
    # ------------------------------------------------------------------
    @property
    def state(self) -> BettingState:
        return self.snapshot()

    def snapshot(self) -> BettingState:
        with self._lock:
            return self._state

    @property
    def phase(self) -> EnginePhase:
        with self._lock:
            if self._state.is_active:
                return EnginePhase.ACTIVE
            if self._has_statistics(self._state):
                return EnginePhase.STOPPED
            return EnginePhase.IDLE

    @staticmethod
    def _has_statistics(state: BettingState) -> bool:
        return bool(state.total_wins or state.total_losses or state.total_profit)

    # ------------------------------------------------------------------
    # Transiciones
    # ------------------------------------------------------------------
    def start(self) -> BettingState:
        with self._lock:
            if self._state.is_active:
                return self._state
            if not self._state.selected_color.is_bettable:
                raise ValueError("Selecciona un color (red u orange) antes de iniciar")

            self._state = replace(
                self._state,
                is_active=True,
                current_bet=self._state.base_bet,
                loss_count=0,
            )
            LOGGER.info(
                "Apuestas iniciadas: color=%s base=%d tope=%d",
                self._state.selected_color.value,
                self._state.base_bet,
                self._state.max_loss_count,
            )
            return self._state

    def stop(self) -> BettingState:
        with self._lock:
            self._state = replace(self._state, is_active=False)
            LOGGER.info("Apuestas detenidas")
            return self._state

    def on_reading(
        self, reading: DiceReading, betting_region: Optional[BettingRegion] = None
    ) -> Optional[RoundResult]:
        with self._lock:
            state = self._state
            if not state.is_active or state.selected_color is DiceColor.NONE:
                return None

            outcome = evaluate_round(reading, state)
            self._state = self._apply_outcome(state, outcome)
            LOGGER.info(
                "Ronda %s: rojo=%d naranja=%d apuesta=%d beneficio=%+d",
                "GANADA" if outcome.won else ("EMPATE" if outcome.is_draw else "PERDIDA"),
                reading.red_pips,
                reading.orange_pips,
                outcome.amount,
                outcome.profit,
            )

            instruction = self.next_instruction(betting_region)
            return RoundResult(outcome=outcome, instruction=instruction, state=self._state)

    def _apply_outcome(self, state: BettingState, outcome: BetOutcome) -> BettingState:
        if outcome.won:
            return replace(
                state,
                current_bet=state.base_bet,
                loss_count=0,
                total_wins=state.total_wins + 1,
                total_profit=state.total_profit + outcome.profit,
            )

        loss_count = state.loss_count + 1
        if loss_count >= state.max_loss_count:
            LOGGER.warning(
                "Se alcanzó el máximo de pérdidas consecutivas (%d). Deteniendo apuestas.",
                loss_count,
            )
            return replace(
                state,
                is_active=False,
                loss_count=loss_count,
                total_losses=state.total_losses + 1,
                total_profit=state.total_profit + outcome.profit,
            )

        return replace(
            state,
            current_bet=state.current_bet * 2,
            loss_count=loss_count,
            total_losses=state.total_losses + 1,
            total_profit=state.total_profit + outcome.profit,
        )

    def next_instruction(self, betting_region: Optional[BettingRegion]) -> Optional[WagerInstruction]:
        """Instrucción para la apuesta actual, o ``None`` si no corresponde apostar."""

        with self._lock:
            state = self._state
            if not state.is_active or not state.selected_color.is_bettable:
                return None
            if betting_region is None:
                LOGGER.warning("No hay región de apuesta configurada; no se generará instrucción")
                return None
            return WagerInstruction(
                color=state.selected_color,
                amount=state.current_bet,
                color_button=betting_region.button_for(state.selected_color),
                bet_button=betting_region.bet_button,
            )

    def reset_statistics(self) -> BettingState:
        with self._lock:
            self._state = replace(
                self._state,
                total_wins=0,
                total_losses=0,
                total_profit=0,
                loss_count=0,
                current_bet=self._state.base_bet,
            )
            return self._state

    def update_settings(
        self,
        base_bet: Optional[int] = None,
        max_loss_count: Optional[int] = None,
        selected_color: Optional[DiceColor] = None,
    ) -> BettingState:
        """Aplica cambios de configuración sin reescribir una apuesta en curso."""

        if base_bet is not None and base_bet <= 0:
            raise ValueError("La apuesta base debe ser positiva")
        if max_loss_count is not None and max_loss_count <= 0:
            raise ValueError("El máximo de pérdidas debe ser positivo")
        if selected_color is DiceColor.UNKNOWN:
            raise ValueError("No se puede apostar a un color desconocido")

        with self._lock:
            state = self._state
            changes: Dict[str, object] = {}
            if base_bet is not None:
                changes["base_bet"] = base_bet
                if not state.is_active:
                    changes["current_bet"] = base_bet
            if max_loss_count is not None:
                changes["max_loss_count"] = max_loss_count
            if selected_color is not None:
                changes["selected_color"] = selected_color
            self._state = replace(state, **changes)
            return self._state
