"""Embedded server: start a pantry server and ask it for a recipe in one process."""

import asyncio

from pantry import EventRecorder, PantryConfig, RecipeClient, RecipeServer, ServerConfig


async def main() -> None:
    recorder = EventRecorder()
    config = PantryConfig(server=ServerConfig(port=0))

    async with RecipeServer(config, sinks=[recorder]) as server:
        print(f"Listening on {server.address}")

        async with RecipeClient("127.0.0.1", server.address.port) as client:
            for text in ("tomato and bread", "kale"):
                reply = await client.ask(text, image_grace=0.2)
                print(f"{text!r} -> {reply.recipe}")

    for event in recorder.events:
        print(event.describe())


asyncio.run(main())
