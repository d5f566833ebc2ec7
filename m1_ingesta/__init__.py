"""Módulo 1 - Ingesta (Visión por Computadora).

Este paquete captura la región de la pantalla donde aparecen los dados,
 identifica cuál es el dado rojo y cuál el naranja y cuenta sus puntos.
"""

from utils.contratos import RegionOfInterest

from .dice_recognizer import DiceRecognizer, RecognizerConfig
from .frame_source import AdbFrameSource, FrameSource, MssFrameSource, build_frame_source

__all__ = [
    "DiceRecognizer",
    "RecognizerConfig",
    "FrameSource",
    "MssFrameSource",
    "AdbFrameSource",
    "RegionOfInterest",
    "build_frame_source",
]
