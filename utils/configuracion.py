"""Configuración del bot: valores por defecto, carga desde JSON y snapshots.

El núcleo solo lee la configuración. Los cambios llegan a través de
``SettingsProvider.update_settings`` desde la capa externa (CLI o API web) y
nunca se escriben a disco desde aquí.
"""

from __future__ import annotations

import copy
import json
import logging
import threading
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from utils.contratos import DiceColor, Point, RegionOfInterest

LOGGER = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("configs/settings.json")

DEFAULT_SETTINGS: Dict[str, Any] = {
    "capture_region": None,
    "betting_region": None,
    "chip_layout": {
        "chips": {
            "10": [100, 900],
            "50": [200, 900],
            "100": [300, 900],
            "500": [400, 900],
            "2500": [500, 900],
        },
        "double_button": [600, 900],
    },
    "check_interval_ms": 6000,
    "max_loss_count": 10,
    "base_bet_amount": 10,
    "selected_color": "none",
    "place_opening_bet": False,
    "frame_source": "mss",
    "gesture_backend": "pyautogui",
    "adb_serial": None,
    "monitor_index": 1,
    "gesture_timeout_ms": 5000,
    "log_dir": "logs/",
}


def _point(value: Any) -> Point:
    x, y = value
    return (int(x), int(y))


@dataclass(frozen=True)
class BettingRegion:
    """Coordenadas de los controles de apuesta en la aplicación objetivo."""

    red: Point
    orange: Point
    bet_button: Point
    draw: Optional[Point] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BettingRegion":
        draw = data.get("draw")
        return cls(
            red=_point(data["red"]),
            orange=_point(data["orange"]),
            bet_button=_point(data["bet_button"]),
            draw=_point(draw) if draw is not None else None,
        )

    def button_for(self, color: DiceColor) -> Point:
        if color is DiceColor.RED:
            return self.red
        if color is DiceColor.ORANGE:
            return self.orange
        raise ValueError(f"No hay botón de apuesta para el color {color.value}")


@dataclass(frozen=True)
class ChipLayout:
    """Escalera de fichas disponibles y posición del botón de doblar."""

    chips: Dict[int, Point]
    double_button: Point

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChipLayout":
        chips = {int(value): _point(coords) for value, coords in data["chips"].items()}
        if not chips:
            raise ValueError("La escalera de fichas no puede estar vacía")
        return cls(chips=dict(sorted(chips.items())), double_button=_point(data["double_button"]))

    @property
    def denominations(self) -> List[int]:
        return sorted(self.chips)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chips": {str(value): list(coords) for value, coords in self.chips.items()},
            "double_button": list(self.double_button),
        }


@dataclass(frozen=True)
class AppSettings:
    capture_region: Optional[RegionOfInterest] = None
    betting_region: Optional[BettingRegion] = None
    chip_layout: ChipLayout = field(
        default_factory=lambda: ChipLayout.from_dict(DEFAULT_SETTINGS["chip_layout"])
    )
    check_interval_ms: int = 6000
    max_loss_count: int = 10
    base_bet_amount: int = 10
    selected_color: DiceColor = DiceColor.NONE
    place_opening_bet: bool = False
    frame_source: str = "mss"
    gesture_backend: str = "pyautogui"
    adb_serial: Optional[str] = None
    monitor_index: int = 1
    gesture_timeout_ms: int = 5000
    log_dir: str = "logs/"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppSettings":
        merged = _deep_merge(DEFAULT_SETTINGS, data)

        capture = merged.get("capture_region")
        if isinstance(capture, RegionOfInterest):
            capture_region: Optional[RegionOfInterest] = capture
        elif isinstance(capture, dict) and capture:
            capture_region = RegionOfInterest(**{k: int(v) for k, v in capture.items()})
        elif capture:
            raise ValueError("capture_region debe ser un objeto con left, top, width y height")
        else:
            capture_region = None

        betting = merged.get("betting_region")
        if isinstance(betting, BettingRegion):
            betting_region: Optional[BettingRegion] = betting
        elif isinstance(betting, dict) and betting:
            betting_region = BettingRegion.from_dict(betting)
        elif betting:
            raise ValueError("betting_region debe ser un objeto con red, orange y bet_button")
        else:
            betting_region = None

        chip_layout = merged["chip_layout"]
        if not isinstance(chip_layout, ChipLayout):
            chip_layout = ChipLayout.from_dict(chip_layout)

        settings = cls(
            capture_region=capture_region,
            betting_region=betting_region,
            chip_layout=chip_layout,
            check_interval_ms=int(merged["check_interval_ms"]),
            max_loss_count=int(merged["max_loss_count"]),
            base_bet_amount=int(merged["base_bet_amount"]),
            selected_color=DiceColor.parse(merged["selected_color"]),
            place_opening_bet=bool(merged["place_opening_bet"]),
            frame_source=str(merged["frame_source"]),
            gesture_backend=str(merged["gesture_backend"]),
            adb_serial=merged.get("adb_serial"),
            monitor_index=int(merged["monitor_index"]),
            gesture_timeout_ms=int(merged["gesture_timeout_ms"]),
            log_dir=str(merged["log_dir"]),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        if self.check_interval_ms <= 0:
            raise ValueError("check_interval_ms debe ser positivo")
        if self.max_loss_count <= 0:
            raise ValueError("max_loss_count debe ser positivo")
        if self.base_bet_amount <= 0:
            raise ValueError("base_bet_amount debe ser positivo")
        if self.selected_color is DiceColor.UNKNOWN:
            raise ValueError("selected_color debe ser red, orange o none")
        if self.capture_region is not None and self.capture_region.is_empty:
            raise ValueError("capture_region no puede estar vacía")

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["selected_color"] = self.selected_color.value
        data["chip_layout"] = self.chip_layout.to_dict()
        return data


def _deep_merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_settings(config_path: str | Path = DEFAULT_CONFIG_PATH) -> AppSettings:
    """Carga la configuración desde JSON combinándola con los valores por defecto."""

    config_file = Path(config_path)
    loaded: Dict[str, Any] = {}
    if config_file.exists():
        try:
            with open(config_file, "r", encoding="utf-8") as handler:
                loaded = json.load(handler)
        except (OSError, json.JSONDecodeError) as exc:
            LOGGER.warning(
                "No se pudo leer %s (%s). Usando configuración por defecto.", config_file, exc
            )
            loaded = {}
    else:
        LOGGER.info("No existe %s. Usando configuración por defecto.", config_file)

    if not isinstance(loaded, dict):
        LOGGER.warning("%s no contiene un objeto JSON. Se ignora.", config_file)
        loaded = {}

    return AppSettings.from_dict(loaded)


SettingsListener = Callable[[AppSettings], None]


class SettingsProvider:
    """Entrega snapshots de configuración y aplica actualizaciones explícitas."""

    def __init__(self, settings: Optional[AppSettings] = None) -> None:
        self._settings = settings or AppSettings()
        self._lock = threading.Lock()
        self._listeners: List[SettingsListener] = []

    def snapshot(self) -> AppSettings:
        with self._lock:
            return self._settings

    def add_listener(self, listener: SettingsListener) -> None:
        self._listeners.append(listener)

    def update_settings(self, **changes: Any) -> AppSettings:
        """Valida y aplica cambios. Acepta valores ya tipados o en formato JSON."""

        unknown = set(changes) - set(DEFAULT_SETTINGS)
        if unknown:
            raise ValueError(f"Claves de configuración desconocidas: {sorted(unknown)}")

        with self._lock:
            current = self._settings
            typed = {k: v for k, v in changes.items() if _is_typed(v)}
            raw = {k: v for k, v in changes.items() if k not in typed}
            if raw:
                base = current.to_dict()
                for key in typed:
                    base.pop(key, None)
                updated = AppSettings.from_dict(_deep_merge(base, raw))
                updated = replace(updated, **typed)
            else:
                updated = replace(current, **typed)
            if "selected_color" in typed:
                updated = replace(updated, selected_color=DiceColor.parse(typed["selected_color"]))
            updated.validate()
            self._settings = updated

        for listener in list(self._listeners):
            listener(updated)
        return updated


def _is_typed(value: Any) -> bool:
    return not isinstance(value, (dict, list, str)) or isinstance(value, DiceColor)
