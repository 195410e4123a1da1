"""Command line entry point.

Usage::

    terrarium run [--host HOST] [--port PORT] [--settings PATH]
        Start the controller: schedules, MQTT subscriptions and HTTP API.
    terrarium settings [--settings PATH]
        Print the persisted settings.
    terrarium temperature [inside|outside]
        Read a sensor once and print the temperature.

Environment variables (TERRARIUM_*) are listed in terrarium/config.py.
"""
from __future__ import annotations

import argparse
import json
import logging
import os
import signal
import sys
import threading

from .config import Config
from .controller import TerrariumController
from .devices import LightController, Sprinkler, use_mock_pins
from .dispatcher import CommandDispatcher
from .errors import PersistenceFailure, SensorReadFailure
from .messaging import MqttBus, Notifier, create_client
from .sensors import read_temperature
from .settings import SettingsStore
from .web import build_app

logger = logging.getLogger("terrarium")


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(levelname)s - %(module)s - %(message)s",
    )


def build_parser(cfg: Config) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="terrarium", description="Terrarium sprinkler, light and temperature controller")
    sub = parser.add_subparsers(dest="cmd")

    p_run = sub.add_parser("run", help="Run schedules, MQTT listener and HTTP API")
    p_run.add_argument("--host", default=cfg.http_host)
    p_run.add_argument("--port", type=int, default=cfg.http_port)
    p_run.add_argument("--settings", default=cfg.settings_path, help="Path of the settings JSON file")

    p_set = sub.add_parser("settings", help="Print the persisted settings")
    p_set.add_argument("--settings", default=cfg.settings_path, help="Path of the settings JSON file")

    p_temp = sub.add_parser("temperature", help="Read a temperature sensor once")
    p_temp.add_argument("location", nargs="?", choices=["inside", "outside"], default="inside")
    return parser


def run(cfg: Config, host: str, port: int) -> int:
    store = SettingsStore(cfg.settings_path)
    try:
        store.load()
    except PersistenceFailure as e:
        logger.critical("Cannot load settings: %s", e)
        return 1

    if cfg.mock_gpio:
        use_mock_pins()
    lock = threading.RLock()
    try:
        sprinkler = Sprinkler(cfg.sprinkler_pin, lock)
    except Exception as e:
        # gpiozero raises a family of errors depending on the pin factory.
        logger.critical("Cannot open relay on GPIO %d: %s", cfg.sprinkler_pin, e)
        return 1

    client = create_client(client_id=f"{cfg.sender_id}-controller")
    notifier = Notifier(client, cfg.sender_id)
    controller = TerrariumController(
        cfg, store, sprinkler, LightController(cfg.light_url, cfg.light_timeout), notifier
    )
    dispatcher = CommandDispatcher(controller)
    bus = MqttBus(client, cfg.mqtt_host, cfg.mqtt_port, cfg.subscriptions, dispatcher.handle_message)
    app = build_app(controller, dispatcher, notifier, mode=cfg.http_mode)

    def _terminate(signum, frame):
        raise SystemExit(0)

    signal.signal(signal.SIGTERM, _terminate)
    try:
        bus.start()
        controller.start()
        logger.info("HTTP API listening on %s:%d (%s mode)", host, port, cfg.http_mode)
        app.run(host=host, port=port)
    except KeyboardInterrupt:
        pass
    finally:
        controller.shutdown()
        bus.stop()
    return 0


def main(argv=None) -> int:
    try:
        cfg = Config.from_env()
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 1
    setup_logging(cfg.log_level)
    parser = build_parser(cfg)
    args = parser.parse_args(argv)

    if args.cmd is None:
        parser.print_help()
        return 0

    if args.cmd == "run":
        cfg.settings_path = args.settings
        return run(cfg, args.host, args.port)

    if args.cmd == "settings":
        if not os.path.exists(args.settings):
            print(f"No settings file at {args.settings}, showing defaults", file=sys.stderr)
        try:
            settings = SettingsStore(args.settings).read()
        except PersistenceFailure as e:
            print(e, file=sys.stderr)
            return 1
        print(json.dumps(settings.to_dict(), indent=2))
        return 0

    if args.cmd == "temperature":
        path = cfg.sensor_inside if args.location == "inside" else cfg.sensor_outside
        try:
            celsius = read_temperature(path)
        except SensorReadFailure as e:
            print(e, file=sys.stderr)
            return 1
        print(f"{args.location}: {celsius:.3f} °C")
        return 0

    parser.print_help()
    return 0
