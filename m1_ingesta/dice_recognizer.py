"""Reconocimiento de la tirada de dos dados (rojo y naranja).

El recorte capturado contiene ambos dados lado a lado. Cada mitad se
clasifica por color (muestreo HSV de la zona central) y se cuentan sus
puntos como componentes conexas blancas tras binarizar por luminancia.

El reconocedor nunca lanza excepciones hacia el orquestador: cualquier
ambigüedad se devuelve como ``RecognitionFailure``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Tuple

import cv2
import numpy as np

from utils.contratos import (
    MAX_PIPS,
    MIN_PIPS,
    DiceColor,
    DiceReading,
    RawFrame,
    RecognitionFailure,
)

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecognizerConfig:
    """Umbrales de clasificación; expuestos para facilitar la calibración."""

    red_hue_ranges: Tuple[Tuple[float, float], ...] = ((0.0, 20.0), (340.0, 360.0))
    orange_hue_range: Tuple[float, float] = (20.0, 40.0)
    min_saturation: float = 0.3
    min_value: float = 0.5
    threshold_ratio: float = 0.7
    min_pip_area_ratio: float = 0.001
    max_pip_area_ratio: float = 0.05


@dataclass(frozen=True)
class HalfAnalysis:
    color: DiceColor
    red_samples: int
    orange_samples: int
    raw_pips: int
    pips: int


class DiceRecognizer:
    """Convierte un ``RawFrame`` en una ``DiceReading`` o un fallo descriptivo."""

    def __init__(self, config: RecognizerConfig | None = None) -> None:
        self.config = config or RecognizerConfig()

    # ------------------------------------------------------------------
    # API pública
    # ------------------------------------------------------------------
    def recognize(self, frame: RawFrame) -> DiceReading | RecognitionFailure:
        pixels = frame.pixels
        if pixels.ndim != 3 or pixels.shape[2] != 3:
            return RecognitionFailure(reason=f"formato de frame no soportado: {pixels.shape}")

        half_width = frame.width // 2
        if half_width == 0 or frame.height == 0:
            return RecognitionFailure(reason="frame vacío")

        left = self.analyze_half(pixels[:, :half_width])
        right = self.analyze_half(pixels[:, half_width : 2 * half_width])

        LOGGER.debug(
            "Colores: izquierda=%s (%d/%d) derecha=%s (%d/%d)",
            left.color.value,
            left.red_samples,
            left.orange_samples,
            right.color.value,
            right.red_samples,
            right.orange_samples,
        )
        LOGGER.debug("Puntos: izquierda=%d derecha=%d", left.pips, right.pips)

        if left.color is DiceColor.RED and right.color is DiceColor.ORANGE:
            return DiceReading(red_pips=left.pips, orange_pips=right.pips, captured_at=frame.captured_at)
        if left.color is DiceColor.ORANGE and right.color is DiceColor.RED:
            return DiceReading(red_pips=right.pips, orange_pips=left.pips, captured_at=frame.captured_at)

        reason = self._describe_mismatch(left.color, right.color)
        LOGGER.info("No se pudo identificar la tirada: %s", reason)
        return RecognitionFailure(reason=reason, left_color=left.color, right_color=right.color)

    def analyze_half(self, half: np.ndarray) -> HalfAnalysis:
        red, orange = self.count_color_samples(half)
        if red > orange:
            color = DiceColor.RED
        elif orange > red:
            color = DiceColor.ORANGE
        else:
            color = DiceColor.UNKNOWN

        raw = self.count_raw_pips(half)
        return HalfAnalysis(
            color=color,
            red_samples=red,
            orange_samples=orange,
            raw_pips=raw,
            pips=self.clamp_pip_count(raw),
        )

    # ------------------------------------------------------------------
    # Clasificación de color
    # ------------------------------------------------------------------
    def count_color_samples(self, half: np.ndarray) -> Tuple[int, int]:
        """Cuenta píxeles rojos y naranjas en el cuadrado central de la mitad."""

        height, width = half.shape[:2]
        if height == 0 or width == 0:
            return 0, 0

        center_x, center_y = width // 2, height // 2
        radius = min(width, height) // 3
        x0, x1 = max(center_x - radius, 0), min(center_x + radius, width - 1)
        y0, y1 = max(center_y - radius, 0), min(center_y + radius, height - 1)
        sample = half[y0 : y1 + 1, x0 : x1 + 1]

        # En float32 OpenCV devuelve H en grados [0, 360) y S, V en [0, 1]
        hsv = cv2.cvtColor(sample.astype(np.float32) / 255.0, cv2.COLOR_BGR2HSV)
        hue, saturation, value = hsv[..., 0], hsv[..., 1], hsv[..., 2]

        cfg = self.config
        vivid = (saturation > cfg.min_saturation) & (value > cfg.min_value)
        is_red = np.zeros(hue.shape, dtype=bool)
        for low, high in cfg.red_hue_ranges:
            is_red |= (hue >= low) & (hue <= high)
        # Un tono en la frontera (20°) cuenta como rojo
        is_orange = (hue >= cfg.orange_hue_range[0]) & (hue <= cfg.orange_hue_range[1]) & ~is_red

        return int(np.count_nonzero(vivid & is_red)), int(np.count_nonzero(vivid & is_orange))

    # ------------------------------------------------------------------
    # Conteo de puntos
    # ------------------------------------------------------------------
    def binarize(self, half: np.ndarray) -> np.ndarray:
        """Imagen de dos niveles (0/255) con umbral al 70% de la luminancia media."""

        pixels = half.astype(np.float64)
        blue, green, red = pixels[..., 0], pixels[..., 1], pixels[..., 2]
        luminance = (0.299 * red + 0.587 * green + 0.114 * blue).astype(np.int32)
        threshold = int(luminance.mean() * self.config.threshold_ratio)
        return np.where(luminance > threshold, 255, 0).astype(np.uint8)

    def count_raw_pips(self, half: np.ndarray) -> int:
        """Número de manchas blancas (4-conectividad) con área de punto de dado."""

        height, width = half.shape[:2]
        area = height * width
        if area == 0:
            return 0

        binary = self.binarize(half)
        count, _, stats, _ = cv2.connectedComponentsWithStats(binary, connectivity=4)

        min_size = int(area * self.config.min_pip_area_ratio)
        max_size = int(area * self.config.max_pip_area_ratio)
        # La etiqueta 0 corresponde al fondo negro
        areas = stats[1:count, cv2.CC_STAT_AREA]
        return int(np.count_nonzero((areas >= min_size) & (areas <= max_size)))

    @staticmethod
    def clamp_pip_count(raw: int) -> int:
        if raw < MIN_PIPS:
            LOGGER.warning("No se encontraron puntos (%d). Se asume 1.", raw)
            return MIN_PIPS
        if raw > MAX_PIPS:
            LOGGER.warning("Conteo de puntos inválido: %d. Se limita a 6.", raw)
            return MAX_PIPS
        return raw

    @staticmethod
    def _describe_mismatch(left: DiceColor, right: DiceColor) -> str:
        if left is DiceColor.UNKNOWN and right is DiceColor.UNKNOWN:
            return "color desconocido en ambas mitades"
        if left is DiceColor.UNKNOWN:
            return "color desconocido en la mitad izquierda"
        if right is DiceColor.UNKNOWN:
            return "color desconocido en la mitad derecha"
        return f"ambas mitades clasificadas como {left.value}"
