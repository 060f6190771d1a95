"""
Async utilities for provider fan-out.

Provider calls are independent and untrusted: each one gets its own
deadline, and a join never lets one failing branch cancel the others.
"""

import asyncio
from typing import Awaitable, Iterable, List, TypeVar, Union

T = TypeVar('T')


async def settle_all(
    calls: Iterable[Awaitable[T]],
    timeout: float,
) -> List[Union[T, BaseException]]:
    """Run awaitables concurrently, each under its own deadline.

    The result list is in call order and holds either the value or the
    exception for each branch. A branch that misses its deadline shows up
    as ``asyncio.TimeoutError``; it never holds up or cancels the others.

    Example:
        results = await settle_all([a.search(q), b.search(q)], timeout=8)
        found = [r for r in results if not isinstance(r, BaseException)]
    """
    wrapped = [asyncio.wait_for(call, timeout=timeout) for call in calls]
    if not wrapped:
        return []
    return await asyncio.gather(*wrapped, return_exceptions=True)
