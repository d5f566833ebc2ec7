"""Dobles de prueba compartidos: imágenes sintéticas de dados, fuentes y gestos."""

import threading
from typing import List, Optional, Sequence, Tuple

import numpy as np

from utils.configuracion import AppSettings, BettingRegion, ChipLayout, SettingsProvider
from utils.contratos import CaptureError, RawFrame, RegionOfInterest

HALF_SIZE = 90
BACKGROUND_BGR = (220, 220, 220)
RED_BGR = (0, 0, 200)
ORANGE_BGR = (0, 60, 140)
GREY_BGR = (128, 128, 128)

# Rejilla 3x3 de posiciones de puntos dentro de la cara del dado
PIP_SLOTS = [(row, col) for row in (22, 42, 62) for col in (22, 42, 62)]


def draw_die(face_bgr: Tuple[int, int, int], pips: int) -> np.ndarray:
    """Mitad de 90x90: fondo gris claro, cara de 60x60 y ``pips`` puntos blancos de 6x6."""

    half = np.full((HALF_SIZE, HALF_SIZE, 3), BACKGROUND_BGR, dtype=np.uint8)
    half[15:75, 15:75] = face_bgr
    for row, col in PIP_SLOTS[:pips]:
        half[row : row + 6, col : col + 6] = (255, 255, 255)
    return half


def dice_frame(
    left: Tuple[Tuple[int, int, int], int],
    right: Tuple[Tuple[int, int, int], int],
    region: Optional[RegionOfInterest] = None,
) -> RawFrame:
    pixels = np.concatenate([draw_die(*left), draw_die(*right)], axis=1)
    region = region or RegionOfInterest(0, 0, pixels.shape[1], pixels.shape[0])
    return RawFrame(pixels=pixels, region=region)


CAPTURE_REGION = RegionOfInterest(0, 0, 2 * HALF_SIZE, HALF_SIZE)

BETTING_REGION = BettingRegion(red=(10, 10), orange=(20, 10), bet_button=(30, 30), draw=(15, 10))

CHIP_LAYOUT = ChipLayout(
    chips={10: (1, 1), 50: (2, 1), 100: (3, 1), 500: (4, 1), 2500: (5, 1)},
    double_button=(9, 9),
)


def make_settings(**overrides) -> SettingsProvider:
    values = dict(
        capture_region=CAPTURE_REGION,
        betting_region=BETTING_REGION,
        chip_layout=CHIP_LAYOUT,
        check_interval_ms=10,
        selected_color="red",
    )
    values.update(overrides)
    settings = AppSettings.from_dict({})
    provider = SettingsProvider(settings)
    provider.update_settings(**values)
    return provider


class FakeFrameSource:
    """Devuelve los frames (o excepciones) indicados, en orden; repite el último."""

    def __init__(self, frames: Sequence[object]) -> None:
        self.frames = list(frames)
        self.calls = 0
        self.closed = False

    def capture(self, region: RegionOfInterest) -> RawFrame:
        item = self.frames[min(self.calls, len(self.frames) - 1)]
        self.calls += 1
        if isinstance(item, Exception):
            raise item
        return item

    def close(self) -> None:
        self.closed = True


class BlockingFrameSource(FakeFrameSource):
    """Bloquea la captura hasta que el test libera ``release``."""

    def __init__(self, frames: Sequence[object]) -> None:
        super().__init__(frames)
        self.entered = threading.Event()
        self.release = threading.Event()

    def capture(self, region: RegionOfInterest) -> RawFrame:
        self.entered.set()
        self.release.wait(5)
        return super().capture(region)


class RecordingDispatcher:
    """Registra cada toque; puede fallar o lanzar en un índice concreto."""

    def __init__(self, fail_at: Optional[int] = None, raise_at: Optional[int] = None) -> None:
        self.taps: List[Tuple[int, int]] = []
        self.fail_at = fail_at
        self.raise_at = raise_at
        self.on_tap = None

    def tap(self, x: int, y: int, duration_ms: int = 100) -> bool:
        index = len(self.taps)
        self.taps.append((x, y))
        if self.on_tap is not None:
            self.on_tap(index)
        if self.raise_at == index:
            raise RuntimeError("gesto roto")
        return self.fail_at != index


def capture_error(message: str = "pantalla no disponible") -> CaptureError:
    return CaptureError(message)
