'''
Bounded polling for objects that are created by external controllers

:maintainer : Steven Hessing <steven@byoda.org>
:copyright  : Copyright 2025
:license    : GPLv3
'''

import asyncio

from typing import TypeVar
from typing import Callable
from typing import Awaitable
from logging import Logger
from logging import getLogger

from registryca.exceptions import NotFoundError
from registryca.exceptions import PollTimeoutError

_LOGGER: Logger = getLogger(__name__)

T = TypeVar('T')

DEFAULT_POLL_INTERVAL: float = 2.0
DEFAULT_POLL_TIMEOUT: float = 10.0


async def poll_until_found(getter: Callable[[], Awaitable[T]],
                           description: str,
                           interval: float = DEFAULT_POLL_INTERVAL,
                           timeout: float = DEFAULT_POLL_TIMEOUT) -> T:
    '''
    Calls the getter immediately and then every interval seconds until
    it returns without raising NotFoundError. Any other exception
    raised by the getter ends the polling

    :param getter: coroutine function returning the object
    :param description: what we are waiting for, used in error messages
    :param interval: seconds between attempts
    :param timeout: seconds after which we give up
    :returns: the value returned by the getter
    :raises: PollTimeoutError if the object was not found in time
    '''

    last_error: NotFoundError | None = None
    try:
        async with asyncio.timeout(timeout):
            while True:
                try:
                    return await getter()
                except NotFoundError as exc:
                    last_error = exc
                    _LOGGER.debug(
                        f'Still waiting for {description}, retrying in '
                        f'{interval} seconds'
                    )

                await asyncio.sleep(interval)
    except TimeoutError as exc:
        message: str = (
            f'Timed out after {timeout} seconds waiting for {description}'
        )
        if last_error:
            message += f': last error: {last_error}'

        raise PollTimeoutError(message) from exc
