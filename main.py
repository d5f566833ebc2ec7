import argparse
import logging
import sys
import time

from m3_decision.orquestador import build_coordinator
from m5_metricas.health_monitor import HealthMonitor
from m5_metricas.logger import EventLogger
from simulation_core import DiceSimulation
from utils.configuracion import DEFAULT_CONFIG_PATH, SettingsProvider, load_settings
from utils.contratos import DiceColor, RegionOfInterest
from utils.eventos import EventBus


def print_summary(title: str, results: dict):
    """Imprime un resumen formateado en la consola."""
    print("\n" + "=" * 60)
    print(f"📊 RESUMEN FINAL: {title.upper()}")
    print("=" * 60)
    print(f"   Rondas: {results['rounds_played']}")
    print(f"   Ganadas / Perdidas: {results['total_wins']} / {results['total_losses']}")
    print(f"   Beneficio total: {results['total_profit']:+,}")
    if 'max_bet' in results:
        print(f"   Apuesta máxima: {results['max_bet']:,}")
    print("=" * 60)


def parse_region(value: str) -> RegionOfInterest:
    try:
        left, top, width, height = (int(part) for part in value.split(","))
    except ValueError as exc:
        raise argparse.ArgumentTypeError("La región debe tener el formato x,y,ancho,alto") from exc
    return RegionOfInterest.from_drag(left, top, left + width, top + height)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Bot de apuestas martingala para el juego de dados rojo/naranja'
    )
    parser.add_argument('--log-level', default='INFO', help='Nivel de logging (DEBUG, INFO, ...)')
    subparsers = parser.add_subparsers(dest='command', required=True)

    run = subparsers.add_parser('run', help='Ejecuta el bucle en vivo')
    run.add_argument('--config', default=str(DEFAULT_CONFIG_PATH), help='Archivo de configuración')
    run.add_argument('--interval', type=int, help='Intervalo entre capturas en ms')
    run.add_argument('--base-bet', type=int, help='Apuesta base')
    run.add_argument('--max-losses', type=int, help='Máximo de pérdidas consecutivas')
    run.add_argument('--color', choices=['red', 'orange'], help='Color al que apostar')
    run.add_argument('--region', type=parse_region, help='Región de captura x,y,ancho,alto')
    run.add_argument('--backend', choices=['pyautogui', 'adb'], help='Backend de captura y gestos')
    run.add_argument('--serial', help='Serial del dispositivo ADB')

    sim = subparsers.add_parser('simulate', help='Simula tiradas aleatorias')
    sim.add_argument('--rounds', type=int, default=1000, help='Número máximo de rondas')
    sim.add_argument('--base-bet', type=int, default=10, help='Apuesta base')
    sim.add_argument('--max-losses', type=int, default=10, help='Máximo de pérdidas consecutivas')
    sim.add_argument('--color', choices=['red', 'orange'], default='red', help='Color al que apostar')
    sim.add_argument('--seed', type=int, help='Semilla del generador aleatorio')
    sim.add_argument('--restart', action='store_true', help='Reiniciar tras alcanzar el tope')
    return parser


def settings_overrides(args: argparse.Namespace) -> dict:
    overrides = {}
    if args.interval is not None:
        overrides['check_interval_ms'] = args.interval
    if args.base_bet is not None:
        overrides['base_bet_amount'] = args.base_bet
    if args.max_losses is not None:
        overrides['max_loss_count'] = args.max_losses
    if args.color is not None:
        overrides['selected_color'] = DiceColor.parse(args.color)
    if args.region is not None:
        overrides['capture_region'] = args.region
    if args.backend == 'adb':
        overrides['frame_source'] = 'adb'
        overrides['gesture_backend'] = 'adb'
    elif args.backend == 'pyautogui':
        overrides['frame_source'] = 'mss'
        overrides['gesture_backend'] = 'pyautogui'
    if args.serial is not None:
        overrides['adb_serial'] = args.serial
    return overrides


def run_live(args: argparse.Namespace) -> int:
    try:
        settings = SettingsProvider(load_settings(args.config)).update_settings(
            **settings_overrides(args)
        )
    except ValueError as exc:
        print(f"❌ Configuración inválida: {exc}")
        return 2

    bus = EventBus()
    coordinator = build_coordinator(settings, bus)
    health = HealthMonitor()
    bus.subscribe(EventLogger(settings.log_dir))
    bus.subscribe(health)

    try:
        coordinator.start()
    except ValueError as exc:
        print(f"❌ No se puede iniciar: {exc}")
        return 2

    print("🚀 Bucle iniciado. Ctrl+C para detener.")
    try:
        while coordinator.running:
            time.sleep(0.5)
    except KeyboardInterrupt:
        print("\n⏹️ Deteniendo...")
    finally:
        coordinator.stop(wait=True, timeout=10)
        coordinator.frame_source.close()

    state = coordinator.engine.snapshot()
    print_summary(
        "sesión en vivo",
        {
            'rounds_played': state.total_wins + state.total_losses,
            'total_wins': state.total_wins,
            'total_losses': state.total_losses,
            'total_profit': state.total_profit,
        },
    )
    print(f"   Salud: {health.get_health_status()}")
    return 0


def run_simulation(args: argparse.Namespace) -> int:
    print(f"🚀 Iniciando simulación apostando a {args.color.upper()}...")
    simulation = DiceSimulation(
        base_bet=args.base_bet,
        max_loss_count=args.max_losses,
        color=DiceColor.parse(args.color),
        max_rounds=args.rounds,
        seed=args.seed,
        restart_after_cap=args.restart,
    )
    results = simulation.run()
    print_summary(args.color, results)
    if results['cap_hits']:
        print(f"   ⚠️ Tope de pérdidas alcanzado {results['cap_hits']} vez/veces")
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if args.command == 'run':
        return run_live(args)
    return run_simulation(args)


if __name__ == "__main__":
    sys.exit(main())
