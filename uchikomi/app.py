"""Application wiring for the uchikomi typing engine."""

import logging
import sys
import time
from pathlib import Path
from typing import List, Optional

from PySide6.QtCore import QCoreApplication

from uchikomi.core.config import EngineConfig, load_config
from uchikomi.core.controller import TelemetrySink, TypingController
from uchikomi.core.offload import OffloadBridge, OffloadCache
from uchikomi.core.phrases import PhraseRepository


def configure_logging() -> None:
    """Configure application-wide logging with a standard format."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def ensure_application() -> QCoreApplication:
    """Return the running Qt application, creating a headless one if needed."""
    app = QCoreApplication.instance()
    if app is None:
        app = QCoreApplication(sys.argv)
        app.setApplicationName("Uchikomi")
    return app


def create_bridge(config: EngineConfig) -> OffloadBridge:
    cache = OffloadCache(config.cache_ceiling, config.cache_eviction_ratio)
    if config.offload_threaded:
        ensure_application()
    return OffloadBridge(
        cache=cache,
        max_in_flight=config.offload_max_in_flight,
        threaded=config.offload_threaded,
    )


def create_controller(
    config_path: Optional[Path] = None,
    telemetry_sink: Optional[TelemetrySink] = None,
) -> TypingController:
    """Build a controller from the user's configuration file."""
    config = load_config(config_path)
    bridge = create_bridge(config) if config.offload_enabled else None
    if bridge is None:
        logging.info("Offload disabled; keystrokes are evaluated on the input thread only")
    return TypingController(config=config, bridge=bridge, telemetry_sink=telemetry_sink)


def run(argv: Optional[List[str]] = None) -> None:
    """Console drill over one bundled phrase set.

    Terminals deliver input a line at a time, so the keystrokes of a line are
    spread evenly between the prompt and the moment the line arrives.
    """
    configure_logging()
    args = sys.argv[1:] if argv is None else argv
    phrase_set = PhraseRepository().get(args[0] if args else "phrases1")
    controller = create_controller()
    print(f"{phrase_set.name}: type the romaji shown and press Enter")

    try:
        for phrase in phrase_set.phrases:
            payload = controller.load(phrase)
            if controller.session is None:
                continue
            print(f"\n{phrase.display_text}  [{payload['romaji']}]")
            shown = time.monotonic() * 1000.0
            try:
                line = input("> ")
            except EOFError:
                break
            arrived = time.monotonic() * 1000.0
            step = (arrived - shown) / max(1, len(line))
            for index, char in enumerate(line):
                controller.handle_key(char, shown + step * (index + 1))
            if QCoreApplication.instance() is not None:
                QCoreApplication.processEvents()
            if controller.session is not None:
                print(f"  unfinished: {controller.snapshot().progress_percent}%")
    finally:
        controller.close()

    record = controller.finish()
    print(
        f"\nSpeed {record.speed} KPM, accuracy {record.accuracy_percent}%, "
        f"rank {record.rank}, score {record.score}"
    )
