import random

from m2_cerebro.betting_engine import BettingEngine
from utils.contratos import BettingState, DiceColor, DiceReading


class DiceSimulation:
    """Motor de simulación de la martingala. Es reutilizable y no imprime nada."""

    def __init__(
        self,
        base_bet: int,
        max_loss_count: int,
        color: DiceColor,
        max_rounds: int = 1000,
        seed: int | None = None,
        restart_after_cap: bool = False,
    ):
        self.engine = BettingEngine(
            BettingState(
                base_bet=base_bet,
                current_bet=base_bet,
                max_loss_count=max_loss_count,
                selected_color=color,
            )
        )
        self.max_rounds = max_rounds
        self.restart_after_cap = restart_after_cap
        self.rng = random.Random(seed)
        self.profit_history = [0]
        self.max_bet_seen = 0
        self.cap_hits = 0

    def roll(self) -> DiceReading:
        return DiceReading(red_pips=self.rng.randint(1, 6), orange_pips=self.rng.randint(1, 6))

    def run(self):
        """Ejecuta una simulación completa y devuelve los resultados."""
        self.engine.start()
        rounds_played = 0

        for _ in range(self.max_rounds):
            result = self.engine.on_reading(self.roll())
            if result is None:
                break

            rounds_played += 1
            self.max_bet_seen = max(self.max_bet_seen, result.outcome.amount)
            self.profit_history.append(result.state.total_profit)

            if not result.state.is_active:
                self.cap_hits += 1
                if not self.restart_after_cap:
                    break
                self.engine.start()

        state = self.engine.snapshot()
        return {
            'rounds_played': rounds_played,
            'total_wins': state.total_wins,
            'total_losses': state.total_losses,
            'total_profit': state.total_profit,
            'max_bet': self.max_bet_seen,
            'cap_hits': self.cap_hits,
            'stopped_by_cap': not state.is_active and self.cap_hits > 0,
            'profit_history': self.profit_history,
        }
