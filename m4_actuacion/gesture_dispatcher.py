"""Despachadores de gestos: la única vía por la que el bot toca la pantalla.

Todos exponen ``tap(x, y, duration_ms) -> bool`` y bloquean hasta conocer
el resultado del gesto (o su timeout), de modo que el secuenciador pueda
encadenar pasos en orden estricto.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, InvalidStateError
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Callable, Optional

import adbutils

from utils.contratos import GestureStep

from .human_like_mouse import HumanLikeMouse

LOGGER = logging.getLogger(__name__)


class GestureDispatcher:
    def tap(self, x: int, y: int, duration_ms: int = 100) -> bool:
        raise NotImplementedError

    def perform(self, step: GestureStep) -> bool:
        return self.tap(step.x, step.y, step.duration_ms)


class PyAutoGuiDispatcher(GestureDispatcher):
    """Clics de escritorio con movimiento humano (``pyautogui``)."""

    def __init__(self, mouse: Optional[HumanLikeMouse] = None) -> None:
        self.mouse = mouse or HumanLikeMouse()

    def tap(self, x: int, y: int, duration_ms: int = 100) -> bool:
        try:
            self.mouse.tap(x, y, duration_ms)
        except self.mouse.pyautogui.PyAutoGUIException as exc:
            LOGGER.error("Clic en (%d, %d) fallido: %s", x, y, exc)
            return False
        LOGGER.debug("Clic en (%d, %d) durante %d ms", x, y, duration_ms)
        return True


class AdbGestureDispatcher(GestureDispatcher):
    """Toques en un dispositivo Android mediante ``input swipe`` sobre ADB."""

    def __init__(
        self,
        serial: Optional[str] = None,
        *,
        host: str = "127.0.0.1",
        port: int = 5037,
        timeout_ms: int = 5000,
    ) -> None:
        self.serial = serial
        self.timeout_ms = timeout_ms
        self._client = adbutils.AdbClient(host=host, port=port)
        self._device: Optional[adbutils.AdbDevice] = None

    def tap(self, x: int, y: int, duration_ms: int = 100) -> bool:
        try:
            if self._device is None:
                self._device = self._client.device(serial=self.serial)
            # Un swipe sin desplazamiento es un toque con duración controlada
            self._device.shell(
                f"input swipe {x} {y} {x} {y} {duration_ms}",
                timeout=self.timeout_ms / 1000.0,
            )
        except adbutils.AdbError as exc:
            LOGGER.error("Toque ADB en (%d, %d) fallido: %s", x, y, exc)
            self._device = None
            return False
        LOGGER.debug("Toque ADB en (%d, %d) durante %d ms", x, y, duration_ms)
        return True


GestureCallback = Callable[[bool], None]


class CallbackGestureBridge(GestureDispatcher):
    """Adapta una API de gestos con callback de finalización a una llamada bloqueante.

    ``dispatch(step, on_done)`` debe iniciar el gesto y llamar a ``on_done``
    con ``True`` (completado) o ``False`` (cancelado) desde cualquier hilo.
    Si el callback no llega antes del timeout, el gesto cuenta como fallido.
    """

    def __init__(
        self,
        dispatch: Callable[[GestureStep, GestureCallback], None],
        *,
        timeout_ms: int = 5000,
    ) -> None:
        self._dispatch = dispatch
        self.timeout_ms = timeout_ms

    def tap(self, x: int, y: int, duration_ms: int = 100) -> bool:
        future: Future = Future()

        def on_done(completed: bool) -> None:
            try:
                future.set_result(bool(completed))
            except InvalidStateError:
                LOGGER.debug("Callback de gesto duplicado ignorado")

        self._dispatch(GestureStep(x=x, y=y, duration_ms=duration_ms), on_done)
        try:
            return future.result(timeout=self.timeout_ms / 1000.0)
        except FutureTimeoutError:
            LOGGER.warning("Gesto en (%d, %d) sin respuesta tras %d ms", x, y, self.timeout_ms)
            return False


def build_gesture_dispatcher(
    kind: str, *, serial: Optional[str] = None, timeout_ms: int = 5000
) -> GestureDispatcher:
    if kind == "pyautogui":
        return PyAutoGuiDispatcher()
    if kind == "adb":
        return AdbGestureDispatcher(serial=serial, timeout_ms=timeout_ms)
    raise ValueError(f"Backend de gestos desconocido: {kind!r}")
