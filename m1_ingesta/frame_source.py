"""Fuentes de frames para el Módulo 1.

Una fuente de frames entrega, bajo demanda, la imagen BGR de la pantalla en
la que se juega. El orquestador recorta después la región configurada. Los
errores de la plataforma se traducen a ``CaptureError`` para que el bucle
de control pueda descartar el tick sin detenerse.
"""

from __future__ import annotations

import logging
from typing import Optional

import adbutils
import cv2
import mss
import mss.exception
import numpy as np

from utils.contratos import CaptureError, RawFrame, RegionOfInterest

LOGGER = logging.getLogger(__name__)


class FrameSource:
    """Interfaz mínima consumida por el orquestador."""

    def capture(self, region: RegionOfInterest) -> RawFrame:
        raise NotImplementedError

    def close(self) -> None:
        """Libera los recursos de la plataforma, si los hay."""


class MssFrameSource(FrameSource):
    """Captura el monitor de escritorio con ``mss``."""

    def __init__(self, monitor_index: int = 1) -> None:
        self.monitor_index = monitor_index
        self._sct: Optional[mss.base.MSSBase] = None

    def _screen(self):
        if self._sct is None:
            self._sct = mss.mss()
        return self._sct

    def capture(self, region: RegionOfInterest) -> RawFrame:
        try:
            sct = self._screen()
            monitors = sct.monitors
            try:
                monitor = monitors[self.monitor_index]
            except IndexError:
                LOGGER.error(
                    "Monitor %s no disponible. Usando el monitor principal.",
                    self.monitor_index,
                )
                monitor = monitors[0]

            screenshot = sct.grab(monitor)
        except mss.exception.ScreenShotError as exc:
            raise CaptureError(f"mss no pudo capturar la pantalla: {exc}") from exc

        frame = cv2.cvtColor(np.array(screenshot), cv2.COLOR_BGRA2BGR)
        screen = RegionOfInterest(
            left=int(monitor["left"]),
            top=int(monitor["top"]),
            width=frame.shape[1],
            height=frame.shape[0],
        )
        return RawFrame(pixels=frame, region=screen)

    def close(self) -> None:
        if self._sct is not None:
            self._sct.close()
            self._sct = None


class AdbFrameSource(FrameSource):
    """Captura la pantalla de un dispositivo Android a través de ADB."""

    def __init__(
        self,
        serial: Optional[str] = None,
        *,
        host: str = "127.0.0.1",
        port: int = 5037,
    ) -> None:
        self.serial = serial
        self._client = adbutils.AdbClient(host=host, port=port)
        self._device: Optional[adbutils.AdbDevice] = None

    def _get_device(self) -> adbutils.AdbDevice:
        if self._device is None:
            try:
                self._device = self._client.device(serial=self.serial)
            except adbutils.AdbError as exc:
                raise CaptureError(f"Dispositivo ADB no disponible: {exc}") from exc
        return self._device

    def capture(self, region: RegionOfInterest) -> RawFrame:
        device = self._get_device()
        try:
            image = device.screenshot()
        except adbutils.AdbError as exc:
            # Forzar reconexión en el siguiente tick
            self._device = None
            raise CaptureError(f"Captura ADB fallida: {exc}") from exc

        frame = cv2.cvtColor(np.array(image.convert("RGB")), cv2.COLOR_RGB2BGR)
        screen = RegionOfInterest(left=0, top=0, width=frame.shape[1], height=frame.shape[0])
        return RawFrame(pixels=frame, region=screen)


def build_frame_source(kind: str, *, monitor_index: int = 1, serial: Optional[str] = None) -> FrameSource:
    if kind == "mss":
        return MssFrameSource(monitor_index=monitor_index)
    if kind == "adb":
        return AdbFrameSource(serial=serial)
    raise ValueError(f"Fuente de frames desconocida: {kind!r}")
