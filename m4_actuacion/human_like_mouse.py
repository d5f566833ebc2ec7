import random
import time

import numpy as np


class HumanLikeMouse:
    """Mueve el ratón por curvas de Bézier y pulsa con una duración dada."""

    def __init__(self, *, move_duration: float = 0.3, jitter_px: int = 2, seed=None):
        # Importación diferida: pyautogui necesita un display al importarse
        import pyautogui

        self.pyautogui = pyautogui
        pyautogui.FAILSAFE = True
        pyautogui.PAUSE = 0.01
        self.move_duration = move_duration
        self.jitter_px = jitter_px
        self._rng = random.Random(seed)
        self._np_rng = np.random.default_rng(seed)

    def bezier_path(self, start, end, control_offset=100):
        """Puntos de una curva de Bézier cuadrática con punto de control aleatorio."""
        start = np.asarray(start, dtype=float)
        end = np.asarray(end, dtype=float)
        control = (start + end) / 2 + self._np_rng.uniform(-control_offset, control_offset, size=2)

        num_points = max(10, int(np.linalg.norm(end - start)) // 15)
        t = np.linspace(0.0, 1.0, num_points + 1)[:, None]
        curve = (1 - t) ** 2 * start + 2 * (1 - t) * t * control + t ** 2 * end
        return [tuple(point) for point in curve.astype(int)]

    def move_to(self, x, y):
        path = self.bezier_path(self.pyautogui.position(), (x, y))
        duration = self._rng.uniform(self.move_duration * 0.8, self.move_duration * 1.2)
        for px, py in path:
            self.pyautogui.moveTo(px, py)
            time.sleep(duration / len(path))

    def tap(self, x, y, duration_ms=100):
        """Mueve, ajusta con un leve temblor y mantiene pulsado ``duration_ms``."""
        self.move_to(x, y)
        if self.jitter_px:
            self.pyautogui.moveRel(
                self._rng.randint(-self.jitter_px, self.jitter_px),
                self._rng.randint(-self.jitter_px, self.jitter_px),
            )
        self.pyautogui.mouseDown()
        time.sleep(duration_ms / 1000.0)
        self.pyautogui.mouseUp()
