#!/usr/bin/env python3
"""Voice → 3D scene: speak (or type) commands, watch them land in a headless scene."""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from sts_core.config import load_config
from sts_core.dispatcher import CommandDispatcher
from sts_core.errors import SessionSetupError
from sts_core.logs import setup_logging
from sts_core.providers.registry import list_providers
from sts_core.simulation import SimulationLoop

log = logging.getLogger("sts_core.cli")

EXIT_WORDS = {"quit", "exit", "bye"}


def _args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        description="Voice-controlled 3D scene",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  speech-to-scene                       # listen on the microphone\n"
            '  speech-to-scene --text "make a red cube" "move it right"\n'
            "  speech-to-scene --text --provider openai   # type commands on stdin\n"
        ),
    )
    p.add_argument("commands", nargs="*", help="commands to run in --text mode")
    p.add_argument("--text", action="store_true", help="typed mode: no microphone")
    p.add_argument("--provider", choices=list_providers(), help="override active_provider")
    p.add_argument("--volatile", action="store_true", help="enable the volatile fast path")
    p.add_argument("--config", help="path to a config.json (default: ./config/config.json)")
    p.add_argument("--simulate", action="store_true", help="run the attraction simulation loop")
    p.add_argument("--warmup", action="store_true", help="prime the provider before the first command")
    p.add_argument("--verbose", "-v", action="store_true")
    return p.parse_args(argv)


def _print_entry(entry) -> None:
    print(f"[{entry.formatted_time}] {entry.display_text}")
    sys.stdout.flush()


async def _run_typed(dispatcher: CommandDispatcher, commands: List[str]) -> int:
    if commands:
        for text in commands:
            await dispatcher.dispatch(text)
        return 0

    print("Type a command (empty line or 'quit' to exit).")
    while True:
        line = await asyncio.to_thread(sys.stdin.readline)
        text = line.strip()
        if not text or text.lower() in EXIT_WORDS:
            return 0
        await dispatcher.dispatch(text)


async def _run_voice(cfg, dispatcher: CommandDispatcher) -> int:
    from sts_core.audio import MicrophoneSource, WhisperStreamingTranscriber
    from sts_core.listening import ContinuousListener

    listener = ContinuousListener.from_config(
        cfg,
        dispatcher,
        MicrophoneSource.from_config(cfg),
        WhisperStreamingTranscriber.from_config(cfg),
        on_state_change=lambda old, new: log.info("[Voice] %s", new.value),
    )
    try:
        await listener.start()
    except SessionSetupError as e:
        log.error("[Voice] could not start listening: %s", e)
        return 1

    print("🎙️ Listening… speak commands. (Ctrl+C to quit)")
    try:
        await asyncio.Event().wait()
    finally:
        await listener.stop()
    return 0


async def _main(cfg, args) -> int:
    try:
        dispatcher = CommandDispatcher.from_config(cfg)
    except (KeyError, RuntimeError) as e:
        log.error("[CLI] provider %r unavailable: %s", cfg.get("active_provider"), e)
        return 2
    dispatcher.on_entry = _print_entry
    if args.warmup:
        await dispatcher.warmup()

    stop = asyncio.Event()
    sim_task = None
    if args.simulate:
        sim_task = asyncio.create_task(SimulationLoop.from_config(cfg, dispatcher.scene).run(stop))
    try:
        if args.text:
            return await _run_typed(dispatcher, args.commands)
        return await _run_voice(cfg, dispatcher)
    finally:
        stop.set()
        if sim_task is not None:
            await sim_task
        s = dispatcher.history.summary()
        log.info("[CLI] %d commands, %d ok, %d failed; %d entities in scene",
                 s["total"], s["succeeded"], s["failed"], len(dispatcher.scene.entities))


def main(argv: Optional[List[str]] = None) -> int:
    args = _args(argv)
    cfg = load_config(path=args.config)
    if args.provider:
        cfg["active_provider"] = args.provider
    if args.volatile:
        cfg["listening"]["volatile_enabled"] = True
    setup_logging(cfg, verbose=args.verbose)
    log.info("[CLI] provider=%s mode=%s", cfg["active_provider"], "text" if args.text else "voice")

    try:
        return asyncio.run(_main(cfg, args))
    except KeyboardInterrupt:
        print("\nBye.")
        return 0


if __name__ == "__main__":
    sys.exit(main())
