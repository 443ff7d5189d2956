from __future__ import annotations

import asyncio
import logging
import uuid
from functools import partial
from typing import Dict

from aiogram import Bot

from storefront.bot.keyboards import confirm_kb
from storefront.core.cart import Confirm

logger = logging.getLogger(__name__)


class ConfirmationBroker:
    """Interactive yes/no gate backed by inline buttons.

    ``ask`` sends the prompt and waits until the answer callback calls
    ``resolve``. An unanswered prompt counts as "no" after ``timeout`` seconds.
    """

    def __init__(self, timeout: float = 60.0):
        self.timeout = timeout
        self._waiting: Dict[str, asyncio.Future] = {}

    async def ask(self, bot: Bot, chat_id: int, prompt: str) -> bool:
        token = uuid.uuid4().hex[:16]
        future = asyncio.get_running_loop().create_future()
        self._waiting[token] = future
        try:
            await bot.send_message(chat_id, prompt, reply_markup=confirm_kb(token))
            return await asyncio.wait_for(future, self.timeout)
        except asyncio.TimeoutError:
            logger.info("Confirmation %s in chat %s expired", token, chat_id)
            return False
        finally:
            self._waiting.pop(token, None)

    def resolve(self, token: str, answer: bool) -> bool:
        future = self._waiting.get(token)
        if future is None or future.done():
            return False
        future.set_result(answer)
        return True

    def for_chat(self, bot: Bot, chat_id: int) -> Confirm:
        return partial(self.ask, bot, chat_id)
