"""
Pruebas del motor de apuestas martingala (m2_cerebro.betting_engine).

Cubren:
- Duplicación tras pérdidas y reinicio tras victorias
- Empates como pérdida
- Tope de pérdidas consecutivas
- Reinicio de estadísticas y cambios de configuración
"""

import unittest

from m2_cerebro.betting_engine import BettingEngine, EnginePhase, evaluate_round
from utils.contratos import BettingState, DiceColor, DiceReading
from tests.fakes import BETTING_REGION

RED_WINS = DiceReading(red_pips=5, orange_pips=2)
ORANGE_WINS = DiceReading(red_pips=2, orange_pips=5)
DRAW = DiceReading(red_pips=3, orange_pips=3)


def make_engine(color=DiceColor.RED, base_bet=10, max_loss_count=10, start=True):
    engine = BettingEngine(
        BettingState(
            base_bet=base_bet,
            current_bet=base_bet,
            max_loss_count=max_loss_count,
            selected_color=color,
        )
    )
    if start:
        engine.start()
    return engine


class TestEvaluateRound(unittest.TestCase):
    def test_draw_is_a_loss_for_red(self):
        state = BettingState(selected_color=DiceColor.RED, current_bet=10)
        outcome = evaluate_round(DRAW, state)

        self.assertTrue(outcome.is_draw)
        self.assertFalse(outcome.won)
        self.assertEqual(outcome.profit, -10)

    def test_draw_is_a_loss_for_orange(self):
        state = BettingState(selected_color=DiceColor.ORANGE, current_bet=40)
        outcome = evaluate_round(DRAW, state)

        self.assertFalse(outcome.won)
        self.assertEqual(outcome.profit, -40)

    def test_orange_win_profit_is_truncated(self):
        state = BettingState(selected_color=DiceColor.ORANGE, current_bet=10)
        outcome = evaluate_round(ORANGE_WINS, state)

        self.assertTrue(outcome.won)
        self.assertEqual(outcome.profit, 12)

    def test_profit_truncation_for_odd_amount(self):
        state = BettingState(selected_color=DiceColor.RED, current_bet=15)

        self.assertEqual(evaluate_round(RED_WINS, state).profit, 19)


class TestMartingale(unittest.TestCase):
    def test_three_losses_hit_cap(self):
        engine = make_engine(max_loss_count=3)
        bets = []

        for _ in range(3):
            result = engine.on_reading(ORANGE_WINS, BETTING_REGION)
            bets.append(result.outcome.amount)

        self.assertEqual(bets, [10, 20, 40])
        state = engine.snapshot()
        self.assertFalse(state.is_active)
        self.assertEqual(state.loss_count, 3)
        self.assertEqual(state.current_bet, 40)
        self.assertEqual(engine.phase, EnginePhase.STOPPED)

    def test_cap_result_has_no_instruction(self):
        engine = make_engine(max_loss_count=1)
        result = engine.on_reading(ORANGE_WINS, BETTING_REGION)

        self.assertIsNone(result.instruction)
        self.assertEqual(result.outcome.profit, -10)

    def test_losses_double_bet(self):
        for losses in range(0, 8):
            with self.subTest(losses=losses):
                engine = make_engine(max_loss_count=10)
                for _ in range(losses):
                    engine.on_reading(ORANGE_WINS)
                state = engine.snapshot()
                self.assertEqual(state.current_bet, 10 * 2 ** losses)
                self.assertEqual(state.loss_count, losses)
                self.assertTrue(state.is_active)

    def test_win_resets_streak(self):
        engine = make_engine()
        for _ in range(4):
            engine.on_reading(DRAW)

        result = engine.on_reading(RED_WINS, BETTING_REGION)

        self.assertTrue(result.outcome.won)
        self.assertEqual(result.outcome.amount, 160)
        self.assertEqual(result.state.current_bet, 10)
        self.assertEqual(result.state.loss_count, 0)
        self.assertEqual(result.state.total_wins, 1)
        self.assertEqual(result.state.total_losses, 4)
        self.assertEqual(result.state.total_profit, -150 + int(160 * 1.28))

    def test_instruction_targets_selected_color(self):
        engine = make_engine(color=DiceColor.ORANGE)
        result = engine.on_reading(RED_WINS, BETTING_REGION)

        self.assertEqual(result.instruction.color, DiceColor.ORANGE)
        self.assertEqual(result.instruction.amount, 20)
        self.assertEqual(result.instruction.color_button, BETTING_REGION.orange)
        self.assertEqual(result.instruction.bet_button, BETTING_REGION.bet_button)

    def test_no_instruction_without_betting_region(self):
        engine = make_engine()
        with self.assertLogs("m2_cerebro.betting_engine", level="WARNING"):
            result = engine.on_reading(RED_WINS)

        self.assertIsNone(result.instruction)
        self.assertTrue(result.outcome.won)

    def test_inactive_engine_ignores_readings(self):
        engine = make_engine(start=False)

        self.assertIsNone(engine.on_reading(RED_WINS))
        self.assertEqual(engine.snapshot().total_wins, 0)


class TestLifecycle(unittest.TestCase):
    def test_start_without_color_raises(self):
        engine = make_engine(color=DiceColor.NONE, start=False)

        with self.assertRaises(ValueError):
            engine.start()
        self.assertEqual(engine.phase, EnginePhase.IDLE)

    def test_start_while_active_keeps_streak(self):
        engine = make_engine()
        engine.on_reading(ORANGE_WINS)

        state = engine.start()

        self.assertEqual(state.current_bet, 20)
        self.assertEqual(state.loss_count, 1)

    def test_restart_after_cap_resets_bet(self):
        engine = make_engine(max_loss_count=2)
        engine.on_reading(ORANGE_WINS)
        engine.on_reading(ORANGE_WINS)

        state = engine.start()

        self.assertTrue(state.is_active)
        self.assertEqual(state.current_bet, 10)
        self.assertEqual(state.loss_count, 0)
        self.assertEqual(state.total_losses, 2)

    def test_phases(self):
        engine = make_engine(start=False)
        self.assertEqual(engine.phase, EnginePhase.IDLE)

        engine.start()
        self.assertEqual(engine.phase, EnginePhase.ACTIVE)

        engine.stop()
        self.assertEqual(engine.phase, EnginePhase.IDLE)

        engine.start()
        engine.on_reading(RED_WINS)
        engine.stop()
        self.assertEqual(engine.phase, EnginePhase.STOPPED)


class TestStatisticsAndSettings(unittest.TestCase):
    def test_reset_then_replay_matches_fresh_engine(self):
        readings = [ORANGE_WINS, DRAW, RED_WINS, ORANGE_WINS, RED_WINS]
        used = make_engine()
        for reading in [RED_WINS, ORANGE_WINS, ORANGE_WINS]:
            used.on_reading(reading)

        reset_state = used.reset_statistics()
        self.assertEqual(
            (reset_state.total_wins, reset_state.total_losses, reset_state.total_profit),
            (0, 0, 0),
        )

        fresh = make_engine()
        for reading in readings:
            used.on_reading(reading)
            fresh.on_reading(reading)

        self.assertEqual(used.snapshot(), fresh.snapshot())

    def test_update_base_bet_while_active_keeps_current_bet(self):
        engine = make_engine()
        engine.on_reading(ORANGE_WINS)

        state = engine.update_settings(base_bet=50)

        self.assertEqual(state.base_bet, 50)
        self.assertEqual(state.current_bet, 20)

        state = engine.on_reading(RED_WINS).state
        self.assertEqual(state.current_bet, 50)

    def test_update_base_bet_while_inactive(self):
        engine = make_engine(start=False)

        state = engine.update_settings(base_bet=100, max_loss_count=4, selected_color=DiceColor.ORANGE)

        self.assertEqual(state.current_bet, 100)
        self.assertEqual(state.max_loss_count, 4)
        self.assertEqual(state.selected_color, DiceColor.ORANGE)

    def test_update_settings_validation(self):
        engine = make_engine(start=False)

        with self.assertRaises(ValueError):
            engine.update_settings(base_bet=0)
        with self.assertRaises(ValueError):
            engine.update_settings(max_loss_count=-1)
        with self.assertRaises(ValueError):
            engine.update_settings(selected_color=DiceColor.UNKNOWN)


if __name__ == "__main__":
    unittest.main()
