"""Módulo de actuación (M4): toques sobre la aplicación del juego de dados."""

from .actuator import ActionSequencer, select_denomination
from .gesture_dispatcher import (
    AdbGestureDispatcher,
    CallbackGestureBridge,
    GestureDispatcher,
    PyAutoGuiDispatcher,
    build_gesture_dispatcher,
)
from .human_like_mouse import HumanLikeMouse

__all__ = [
    "ActionSequencer",
    "select_denomination",
    "GestureDispatcher",
    "PyAutoGuiDispatcher",
    "AdbGestureDispatcher",
    "CallbackGestureBridge",
    "build_gesture_dispatcher",
    "HumanLikeMouse",
]
