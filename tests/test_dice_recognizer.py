"""
Pruebas del reconocedor de dados (m1_ingesta.dice_recognizer).

Cubren:
- Lectura roja/naranja en ambos órdenes
- Fallos por colores repetidos o desconocidos
- Ajuste del conteo de puntos a [1, 6]
- Frames vacíos o con formato no soportado
"""

import unittest

import numpy as np

from m1_ingesta.dice_recognizer import DiceRecognizer, RecognizerConfig
from utils.contratos import DiceColor, DiceReading, RawFrame, RecognitionFailure, RegionOfInterest
from tests.fakes import GREY_BGR, ORANGE_BGR, RED_BGR, dice_frame, draw_die


class TestRecognizeReadings(unittest.TestCase):
    def setUp(self):
        self.recognizer = DiceRecognizer()

    def test_red_left_orange_right(self):
        result = self.recognizer.recognize(dice_frame((RED_BGR, 3), (ORANGE_BGR, 5)))

        self.assertIsInstance(result, DiceReading)
        self.assertEqual(result.red_pips, 3)
        self.assertEqual(result.orange_pips, 5)

    def test_orange_left_red_right(self):
        result = self.recognizer.recognize(dice_frame((ORANGE_BGR, 2), (RED_BGR, 6)))

        self.assertIsInstance(result, DiceReading)
        self.assertEqual(result.red_pips, 6)
        self.assertEqual(result.orange_pips, 2)

    def test_reading_keeps_capture_timestamp(self):
        frame = dice_frame((RED_BGR, 1), (ORANGE_BGR, 1))
        result = self.recognizer.recognize(frame)

        self.assertEqual(result.captured_at, frame.captured_at)
        self.assertTrue(result.is_draw)

    def test_odd_width_ignores_last_column(self):
        frame = dice_frame((RED_BGR, 4), (ORANGE_BGR, 2))
        padded = np.concatenate(
            [frame.pixels, np.full((frame.height, 1, 3), 220, dtype=np.uint8)], axis=1
        )
        result = self.recognizer.recognize(
            RawFrame(pixels=padded, region=RegionOfInterest(0, 0, padded.shape[1], padded.shape[0]))
        )

        self.assertIsInstance(result, DiceReading)
        self.assertEqual((result.red_pips, result.orange_pips), (4, 2))


class TestRecognitionFailures(unittest.TestCase):
    def setUp(self):
        self.recognizer = DiceRecognizer()

    def test_both_halves_red(self):
        result = self.recognizer.recognize(dice_frame((RED_BGR, 3), (RED_BGR, 4)))

        self.assertIsInstance(result, RecognitionFailure)
        self.assertEqual(result.left_color, DiceColor.RED)
        self.assertEqual(result.right_color, DiceColor.RED)
        self.assertIn("red", result.reason)

    def test_unknown_color_on_left(self):
        result = self.recognizer.recognize(dice_frame((GREY_BGR, 3), (ORANGE_BGR, 4)))

        self.assertIsInstance(result, RecognitionFailure)
        self.assertEqual(result.left_color, DiceColor.UNKNOWN)
        self.assertEqual(result.right_color, DiceColor.ORANGE)
        self.assertIn("izquierda", result.reason)

    def test_empty_frame(self):
        pixels = np.zeros((0, 0, 3), dtype=np.uint8)
        result = self.recognizer.recognize(RawFrame(pixels=pixels, region=RegionOfInterest(0, 0, 0, 0)))

        self.assertIsInstance(result, RecognitionFailure)

    def test_single_column_frame(self):
        pixels = np.full((10, 1, 3), 200, dtype=np.uint8)
        result = self.recognizer.recognize(RawFrame(pixels=pixels, region=RegionOfInterest(0, 0, 1, 10)))

        self.assertIsInstance(result, RecognitionFailure)

    def test_grayscale_frame_rejected(self):
        pixels = np.zeros((20, 40), dtype=np.uint8)
        result = self.recognizer.recognize(RawFrame(pixels=pixels, region=RegionOfInterest(0, 0, 40, 20)))

        self.assertIsInstance(result, RecognitionFailure)
        self.assertIn("formato", result.reason)


class TestPipCounting(unittest.TestCase):
    def setUp(self):
        self.recognizer = DiceRecognizer()

    def test_counts_each_face_value(self):
        for pips in range(1, 7):
            with self.subTest(pips=pips):
                self.assertEqual(self.recognizer.count_raw_pips(draw_die(RED_BGR, pips)), pips)

    def test_blank_face_clamped_to_one(self):
        with self.assertLogs("m1_ingesta.dice_recognizer", level="WARNING") as logs:
            analysis = self.recognizer.analyze_half(draw_die(RED_BGR, 0))

        self.assertEqual(analysis.raw_pips, 0)
        self.assertEqual(analysis.pips, 1)
        self.assertTrue(any("No se encontraron puntos" in line for line in logs.output))

    def test_too_many_pips_clamped_to_six(self):
        with self.assertLogs("m1_ingesta.dice_recognizer", level="WARNING") as logs:
            result = self.recognizer.recognize(dice_frame((RED_BGR, 8), (ORANGE_BGR, 2)))

        self.assertEqual(result.red_pips, 6)
        self.assertTrue(any("inválido" in line for line in logs.output))

    def test_binarize_is_two_level(self):
        binary = self.recognizer.binarize(draw_die(ORANGE_BGR, 5))

        self.assertEqual(set(np.unique(binary)), {0, 255})

    def test_clamp_pip_count_in_range(self):
        self.assertEqual(DiceRecognizer.clamp_pip_count(4), 4)


class TestColorSampling(unittest.TestCase):
    def test_red_face_samples(self):
        red, orange = DiceRecognizer().count_color_samples(draw_die(RED_BGR, 2))

        self.assertGreater(red, 0)
        self.assertEqual(orange, 0)

    def test_orange_face_samples(self):
        red, orange = DiceRecognizer().count_color_samples(draw_die(ORANGE_BGR, 2))

        self.assertEqual(red, 0)
        self.assertGreater(orange, 0)

    def test_dark_face_is_not_vivid(self):
        dark_red = (0, 0, 90)
        red, orange = DiceRecognizer().count_color_samples(draw_die(dark_red, 2))

        self.assertEqual((red, orange), (0, 0))

    def test_custom_thresholds(self):
        config = RecognizerConfig(min_value=0.9)
        red, _ = DiceRecognizer(config).count_color_samples(draw_die(RED_BGR, 2))

        self.assertEqual(red, 0)


if __name__ == "__main__":
    unittest.main()
