"""API de control (Flask + Socket.IO) para el bucle de apuestas en vivo.

Solo expone endpoints JSON; la interfaz gráfica queda fuera de este
repositorio. Cada evento del bus se reenvía a los clientes conectados como
``status_update``.
"""

from __future__ import annotations

import argparse
import logging
from typing import Optional, Tuple

from flask import Flask, jsonify, request
from flask_socketio import SocketIO

from m3_decision.orquestador import CaptureCoordinator, build_coordinator
from m5_metricas.health_monitor import HealthMonitor
from m5_metricas.logger import EventLogger, event_to_dict
from utils.configuracion import DEFAULT_CONFIG_PATH, load_settings
from utils.eventos import EventBus

LOGGER = logging.getLogger(__name__)


def create_app(
    coordinator: CaptureCoordinator,
    health_monitor: Optional[HealthMonitor] = None,
) -> Tuple[Flask, SocketIO]:
    """Crea la aplicación web ligada a un coordinador ya construido."""

    app = Flask(__name__)
    socketio = SocketIO(app, async_mode="threading")
    health = health_monitor or HealthMonitor()
    coordinator.bus.subscribe(health)

    def forward(event) -> None:
        socketio.emit("status_update", event_to_dict(event))

    coordinator.bus.subscribe(forward)

    # --- Rutas de la API de Control ---
    @app.route("/status", methods=["GET"])
    def status():
        payload = coordinator.get_status()
        payload["health"] = health.generate_health_report()
        return jsonify(payload)

    @app.route("/start", methods=["POST"])
    def start_bot():
        try:
            started = coordinator.start()
        except ValueError as exc:
            return jsonify({"status": "Error", "error": str(exc)}), 400
        return jsonify({"status": "Bot iniciado" if started else "El bot ya estaba en marcha"})

    @app.route("/stop", methods=["POST"])
    def stop_bot():
        coordinator.stop()
        return jsonify({"status": "Deteniendo bot..."})

    @app.route("/reset", methods=["POST"])
    def reset_statistics():
        coordinator.reset_statistics()
        return jsonify({"status": "Estadísticas reiniciadas"})

    @app.route("/settings", methods=["GET", "POST"])
    def settings():
        if request.method == "GET":
            return jsonify(coordinator.settings.snapshot().to_dict())

        changes = request.get_json(silent=True)
        if not isinstance(changes, dict):
            return jsonify({"status": "Error", "error": "Se esperaba un objeto JSON"}), 400
        try:
            updated = coordinator.update_settings(**changes)
        except (ValueError, TypeError, KeyError) as exc:
            return jsonify({"status": "Error", "error": str(exc)}), 400
        return jsonify(updated.to_dict())

    return app, socketio


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Panel de control del bot de dados")
    parser.add_argument("--config", default=str(DEFAULT_CONFIG_PATH))
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=5000)
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    settings = load_settings(args.config)
    bus = EventBus()
    bus.subscribe(EventLogger(settings.log_dir))
    coordinator = build_coordinator(settings, bus)
    app, socketio = create_app(coordinator)

    print(f"🚀 Iniciando Panel de Control en http://{args.host}:{args.port}")
    socketio.run(app, host=args.host, port=args.port, debug=False, allow_unsafe_werkzeug=True)


if __name__ == "__main__":
    main()
