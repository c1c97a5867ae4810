import asyncio
import os

import dotenv

from resumable_sse import AsyncEventChannel, AsyncSSEConnector

dotenv.load_dotenv()


async def main() -> None:
    url = os.getenv("RESUMABLE_SSE_TEST_URL", "http://localhost:8000/sse/stream")
    connector = AsyncSSEConnector(url)
    channel = AsyncEventChannel()

    async def run() -> None:
        try:
            await connector.run(channel)
        finally:
            await channel.close()

    task = asyncio.create_task(run())
    async for event in channel:
        print(event.id, event.type, event.text)
        if event.type == "bye":
            connector.stop()
    await task


asyncio.run(main())
