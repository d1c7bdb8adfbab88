"""Command-line entry point.

Run with:
    pantry serve --config pantry.toml
    pantry ask 127.0.0.1 11000 "tomato and basil" --save dish.png
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from collections.abc import Coroutine
from pathlib import Path
from typing import Any

from pantry import logger as pantry_logger
from pantry.client import RecipeClient
from pantry.config import PantryConfig, load_config
from pantry.errors import BindError
from pantry.server import RecipeServer

log = pantry_logger.get_logger("cli")


def _run[T](main: Coroutine[Any, Any, T]) -> T:
    if sys.platform == "win32":
        return asyncio.run(main)
    import uvloop

    return uvloop.run(main)


def _stop_on_signals(server: RecipeServer) -> set[asyncio.Task[None]]:
    """Make SIGINT and SIGTERM stop *server*.

    Returns the set holding the in-flight stop tasks; each task leaves it
    when done.
    """
    loop = asyncio.get_running_loop()
    stopping: set[asyncio.Task[None]] = set()

    def on_signal() -> None:
        task = loop.create_task(server.stop())
        stopping.add(task)
        task.add_done_callback(stopping.discard)

    try:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, on_signal)
    except NotImplementedError:
        pass
    return stopping


async def _serve(config: PantryConfig) -> None:
    server = RecipeServer(config)
    await server.start()

    _stop_on_signals(server)
    log.info("Server running. Press Ctrl+C to stop.")
    try:
        await server.serve_forever()
    finally:
        await server.stop()


async def _ask(host: str, port: int, text: str, timeout: float, save: Path | None) -> int:
    async with RecipeClient(host, port) as client:
        try:
            reply = await client.ask(text, timeout=timeout)
        except TimeoutError:
            print("No reply (request denied or lost).", file=sys.stderr)
            return 1
    print(reply.recipe)
    if reply.image is not None:
        if save is not None:
            save.write_bytes(reply.image)
            print(f"Image saved to {save} ({len(reply.image)} bytes)")
        else:
            print(f"Image received ({len(reply.image)} bytes)")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pantry", description="UDP recipe server")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the recipe server")
    serve.add_argument("--config", type=Path, default=None, help="Path to pantry.toml")
    serve.add_argument("--host", default=None, help="Override the bind host")
    serve.add_argument("--port", type=int, default=None, help="Override the bind port")

    ask = sub.add_parser("ask", help="Send one request to a server")
    ask.add_argument("host")
    ask.add_argument("port", type=int)
    ask.add_argument("text", help="Ingredients, e.g. 'tomato and basil'")
    ask.add_argument("--timeout", type=float, default=2.0)
    ask.add_argument("--save", type=Path, default=None, help="Where to write the image")

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    match args.command:
        case "serve":
            config = load_config(args.config).with_server(host=args.host, port=args.port)
            pantry_logger.configure(
                level=config.logging.level,
                formatter=config.logging.format,
                colors=config.logging.colors,
            )
            try:
                _run(_serve(config))
            except BindError as e:
                log.error("%s", e)
                return 2
            return 0
        case "ask":
            return _run(_ask(args.host, args.port, args.text, args.timeout, args.save))
        case _:
            return 2


if __name__ == "__main__":
    sys.exit(main())
