"""
Asyncio helpers shared by the crawler and the marketplace interception.
"""

import asyncio
import inspect
from typing import Awaitable, Callable, Optional, Union

Check = Callable[[], Union[bool, None, Awaitable[Union[bool, None]]]]


async def poll(check: Check, interval: float) -> None:
    """Call ``check`` every ``interval`` seconds until it returns a truthy value."""
    while True:
        result = check()
        if inspect.isawaitable(result):
            result = await result
        if result:
            return
        await asyncio.sleep(interval)


async def first_completed(*aws: Awaitable, timeout: Optional[float] = None) -> bool:
    """
    Wait until the first of several awaitables finishes, then cancel the rest.

    Returns:
        True if one finished, False on timeout

    Raises:
        Whatever the first finished awaitable raised.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        done, _ = await asyncio.wait(tasks, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    if not done:
        return False
    for task in done:
        task.result()
    return True
