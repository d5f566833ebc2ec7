"""Contratos compartidos entre los módulos del bot de dados.

Todos los módulos (ingesta, cerebro, orquestador, actuación y métricas)
intercambian exclusivamente los tipos definidos aquí. Los registros son
inmutables: quien los recibe puede leerlos, nunca modificarlos.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

import numpy as np

Point = Tuple[int, int]

MIN_PIPS = 1
MAX_PIPS = 6


class EventType(Enum):
    # Eventos del orquestador
    LOOP_STARTED = "LOOP_STARTED"
    LOOP_STOPPED = "LOOP_STOPPED"
    TICK_SKIPPED = "TICK_SKIPPED"
    CAPTURE_FAILED = "CAPTURE_FAILED"

    # Eventos de M1
    DICE_READING = "DICE_READING"
    RECOGNITION_FAILED = "RECOGNITION_FAILED"

    # Eventos de M2
    BET_OUTCOME = "BET_OUTCOME"
    STATE_UPDATE = "STATE_UPDATE"
    MAX_LOSS_REACHED = "MAX_LOSS_REACHED"

    # Eventos de M4
    WAGER_INSTRUCTION = "WAGER_INSTRUCTION"
    ACTION_CONFIRMED = "ACTION_CONFIRMED"


class DiceColor(Enum):
    """Color de un dado o color elegido para apostar.

    El reconocedor solo produce RED, ORANGE o UNKNOWN; el motor de apuestas
    solo acepta RED, ORANGE o NONE como color seleccionado.
    """

    RED = "red"
    ORANGE = "orange"
    NONE = "none"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: "DiceColor | str | None") -> "DiceColor":
        if isinstance(value, DiceColor):
            return value
        if value is None:
            return cls.NONE
        normalized = str(value).strip().lower()
        for color in cls:
            if color.value == normalized or color.name.lower() == normalized:
                return color
        raise ValueError(f"Color desconocido: {value!r}")

    @property
    def is_bettable(self) -> bool:
        return self in (DiceColor.RED, DiceColor.ORANGE)


@dataclass
class Event:
    timestamp: float
    event_type: EventType
    data: Optional[Dict[str, Any]] = None

    @classmethod
    def create(cls, event_type: EventType, **kwargs):
        return cls(timestamp=time.time(), event_type=event_type, data=kwargs)


class CaptureError(RuntimeError):
    """No fue posible obtener un frame de la fuente de captura."""


@dataclass(frozen=True)
class RegionOfInterest:
    """Define un rectángulo dentro del monitor a capturar."""

    left: int
    top: int
    width: int
    height: int

    @classmethod
    def from_drag(cls, x0: float, y0: float, x1: float, y1: float) -> "RegionOfInterest":
        """Normaliza un arrastre en cualquier dirección a un rectángulo válido."""

        left = int(min(x0, x1))
        top = int(min(y0, y1))
        right = int(max(x0, x1))
        bottom = int(max(y0, y1))
        return cls(left=left, top=top, width=right - left, height=bottom - top)

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def clamp(self, frame: np.ndarray) -> "RegionOfInterest":
        """Devuelve una ROI asegurando que quede dentro de la imagen."""

        if frame.size == 0:
            return self

        frame_h, frame_w = frame.shape[:2]
        left = max(self.left, 0)
        top = max(self.top, 0)
        right = min(self.left + self.width, frame_w)
        bottom = min(self.top + self.height, frame_h)
        width = max(right - left, 0)
        height = max(bottom - top, 0)
        return RegionOfInterest(left=left, top=top, width=width, height=height)

    def extract(self, frame: np.ndarray) -> np.ndarray:
        """Extrae la subimagen correspondiente a la ROI."""

        roi = self.clamp(frame)
        if roi.width == 0 or roi.height == 0:
            channels = frame.shape[2] if frame.ndim == 3 else 1
            return np.zeros((0, 0, channels), dtype=frame.dtype)
        return frame[roi.top : roi.top + roi.height, roi.left : roi.left + roi.width]

    def to_mss(self) -> Dict[str, int]:
        """Convierte la ROI al formato utilizado por `mss`."""

        return {
            "left": self.left,
            "top": self.top,
            "width": self.width,
            "height": self.height,
        }

    def as_tuple(self) -> Tuple[int, int, int, int]:
        return (self.left, self.top, self.width, self.height)


@dataclass(frozen=True, eq=False)
class RawFrame:
    """Captura de una región de la pantalla en formato BGR."""

    pixels: np.ndarray
    region: RegionOfInterest
    captured_at: float = field(default_factory=time.time)

    def __post_init__(self) -> None:
        # El buffer pertenece al ciclo que lo capturó; nadie debe escribirlo.
        if self.pixels.flags.writeable:
            pixels = self.pixels.copy()
            pixels.setflags(write=False)
            object.__setattr__(self, "pixels", pixels)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1]) if self.pixels.ndim >= 2 else 0

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0]) if self.pixels.ndim >= 2 else 0

    def crop(self, region: RegionOfInterest) -> "RawFrame":
        """Recorta el frame a una ROI expresada en coordenadas de pantalla."""

        if region == self.region:
            return self

        relative = RegionOfInterest(
            left=region.left - self.region.left,
            top=region.top - self.region.top,
            width=region.width,
            height=region.height,
        )
        pixels = np.ascontiguousarray(relative.extract(self.pixels))
        return RawFrame(pixels=pixels, region=region, captured_at=self.captured_at)


@dataclass(frozen=True)
class DiceReading:
    red_pips: int
    orange_pips: int
    captured_at: float = field(default_factory=time.time)

    def __post_init__(self) -> None:
        for name in ("red_pips", "orange_pips"):
            value = getattr(self, name)
            if not MIN_PIPS <= value <= MAX_PIPS:
                raise ValueError(f"{name} fuera de rango [1, 6]: {value}")

    @property
    def is_draw(self) -> bool:
        return self.red_pips == self.orange_pips


@dataclass(frozen=True)
class RecognitionFailure:
    reason: str
    left_color: DiceColor = DiceColor.UNKNOWN
    right_color: DiceColor = DiceColor.UNKNOWN


@dataclass(frozen=True)
class BettingState:
    base_bet: int = 10
    current_bet: int = 10
    loss_count: int = 0
    max_loss_count: int = 10
    selected_color: DiceColor = DiceColor.NONE
    is_active: bool = False
    total_wins: int = 0
    total_losses: int = 0
    total_profit: int = 0


@dataclass(frozen=True)
class BetOutcome:
    won: bool
    is_draw: bool
    amount: int
    profit: int


@dataclass(frozen=True)
class WagerInstruction:
    color: DiceColor
    amount: int
    color_button: Point
    bet_button: Point


@dataclass(frozen=True)
class GestureStep:
    x: int
    y: int
    duration_ms: int = 100


@dataclass(frozen=True)
class ActuationResult:
    """Resultado de una secuencia de gestos (éxito o fallo de actuación)."""

    ok: bool
    latency_ms: float
    steps_executed: int = 0
    reason: str = ""
    error: Optional[str] = None
    cancelled: bool = False
