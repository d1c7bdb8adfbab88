"""Quota and idle eviction: a chatty client is cut off, then forgiven once idle."""

import asyncio

from pantry import (
    LimitsConfig,
    LivenessConfig,
    PantryConfig,
    RecipeClient,
    RecipeServer,
    ServerConfig,
)


async def main() -> None:
    config = PantryConfig(
        server=ServerConfig(port=0),
        limits=LimitsConfig(max_requests_per_hour=3),
        liveness=LivenessConfig(idle_timeout=1.0, sweep_interval=0.25),
    )

    async with RecipeServer(config) as server:
        async with RecipeClient("127.0.0.1", server.address.port) as client:
            for n in range(1, 6):
                try:
                    reply = await client.ask("tomato", timeout=0.5, image_grace=0.1)
                    print(f"request {n}: {reply.recipe}")
                except TimeoutError:
                    print(f"request {n}: no reply (over quota)")

            print("going quiet...")
            await asyncio.sleep(1.5)

            reply = await client.ask("tomato", timeout=0.5, image_grace=0.1)
            print(f"after eviction: {reply.recipe}")


asyncio.run(main())
