import asyncio
import logging

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode

from storefront.bot.clients import ShopClients, sign_out_notifier
from storefront.bot.confirm import ConfirmationBroker
from storefront.bot.handlers import router
from storefront.config import check_settings, settings
from storefront.db.sqlite import init_db


async def main() -> None:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

    check_settings(settings)
    init_db(settings.db_path)

    bot = Bot(token=settings.bot_token, default=DefaultBotProperties(parse_mode=ParseMode.HTML))
    clients = ShopClients(
        api_url=settings.api_url,
        db_path=settings.db_path,
        timeout=settings.request_timeout,
        notifier=sign_out_notifier(bot),
    )
    confirmations = ConfirmationBroker(timeout=settings.confirm_timeout)

    dp = Dispatcher()
    dp.include_router(router)

    try:
        await dp.start_polling(bot, clients=clients, confirmations=confirmations)
    finally:
        await clients.aclose()
        await bot.session.close()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
