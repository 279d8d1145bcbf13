import trio


async def checkpoint():
    await trio.sleep(0)
