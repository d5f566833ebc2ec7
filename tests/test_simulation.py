"""Pruebas de la simulación de la martingala y de la CLI (simulation_core, main)."""

import argparse

import pytest

import main
from simulation_core import DiceSimulation
from utils.contratos import DiceColor, RegionOfInterest


def test_simulation_is_reproducible():
    first = DiceSimulation(10, 5, DiceColor.RED, max_rounds=200, seed=7).run()
    second = DiceSimulation(10, 5, DiceColor.RED, max_rounds=200, seed=7).run()

    assert first == second


def test_simulation_totals_are_consistent():
    results = DiceSimulation(10, 6, DiceColor.ORANGE, max_rounds=300, seed=3).run()

    assert results["rounds_played"] == results["total_wins"] + results["total_losses"]
    assert results["profit_history"][-1] == results["total_profit"]
    assert len(results["profit_history"]) == results["rounds_played"] + 1
    assert results["max_bet"] <= 10 * 2 ** 5


def test_simulation_stops_at_cap():
    results = DiceSimulation(10, 1, DiceColor.RED, max_rounds=1000, seed=1).run()

    if results["cap_hits"]:
        assert results["stopped_by_cap"]
        assert results["total_losses"] == 1
    else:
        assert results["rounds_played"] == 1000


def test_simulation_restart_after_cap():
    results = DiceSimulation(
        10, 2, DiceColor.RED, max_rounds=500, seed=11, restart_after_cap=True
    ).run()

    assert results["rounds_played"] == 500
    assert results["cap_hits"] > 0


def test_parse_region():
    assert main.parse_region("10,20,300,40") == RegionOfInterest(10, 20, 300, 40)


def test_parse_region_rejects_garbage():
    with pytest.raises(argparse.ArgumentTypeError):
        main.parse_region("10,20")


def test_settings_overrides():
    args = main.build_parser().parse_args(
        ["run", "--interval", "2000", "--color", "orange", "--backend", "adb", "--serial", "emulator-5554"]
    )

    overrides = main.settings_overrides(args)

    assert overrides["check_interval_ms"] == 2000
    assert overrides["selected_color"] is DiceColor.ORANGE
    assert overrides["frame_source"] == "adb"
    assert overrides["gesture_backend"] == "adb"
    assert overrides["adb_serial"] == "emulator-5554"
    assert "base_bet_amount" not in overrides


def test_simulate_command(capsys):
    exit_code = main.main(["simulate", "--rounds", "50", "--seed", "5", "--color", "orange"])

    assert exit_code == 0
    assert "RESUMEN FINAL" in capsys.readouterr().out
