"""
Telegram bot: YouTube/TikTok downloads and TMDB movie search.

Usage (local):
  export BOT_TOKEN="..."
  media-bot            # or: python -m media_bot
"""

import logging

from telegram import Update
from telegram.ext import (
    Application,
    ApplicationBuilder,
    CallbackQueryHandler,
    CommandHandler,
    MessageHandler,
    filters,
)

from . import handlers
from .config import Config, load_config
from .cookies import prepare_cookie_args
from .downloader import QUALITY_CHOICES, Downloader
from .handlers import Services
from .movies import MovieCatalog
from .photo_post import PhotoPostFetcher
from .stores import LinkTokenStore, SearchResultStore

DOWNLOAD_CALLBACK = r"^dl:(%s):\w+$" % "|".join(QUALITY_CHOICES)
DETAILS_CALLBACK = r"^mv:\d+$"


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level, format="%(asctime)s | %(levelname)s | %(message)s")
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("telegram").setLevel(logging.WARNING)


def build_services(config: Config) -> Services:
    config.download_dir.mkdir(parents=True, exist_ok=True)
    logging.info("Download directory: %s", config.download_dir.resolve())
    return Services(
        config=config,
        downloader=Downloader(config, prepare_cookie_args(config)),
        links=LinkTokenStore(ttl=config.cache_ttl_seconds),
        searches=SearchResultStore(ttl=config.cache_ttl_seconds),
        catalog=MovieCatalog(config),
        photos=PhotoPostFetcher(),
    )


async def close_services(app: Application) -> None:
    services: Services = app.bot_data.get("services")
    if services is None:
        return
    await services.catalog.close()
    await services.photos.close()


def build_app(config: Config) -> Application:
    builder = (
        ApplicationBuilder()
        .token(config.bot_token)
        .read_timeout(config.timeout_seconds)
        .write_timeout(config.timeout_seconds)
        .post_shutdown(close_services)
        .concurrent_updates(True)
    )
    if config.telegram_api_url:
        # self-hosted Bot API server lifts the 50MB upload limit
        builder = (
            builder
            .base_url(f"{config.telegram_api_url}/bot")
            .base_file_url(f"{config.telegram_api_url}/file/bot")
            .local_mode(True)
        )
    app = builder.build()
    app.bot_data["services"] = build_services(config)

    app.add_handler(CommandHandler("start", handlers.start))
    app.add_handler(CommandHandler("help", handlers.start))
    app.add_handler(CommandHandler("movie", handlers.movie_command))
    app.add_handler(CallbackQueryHandler(handlers.on_download, pattern=DOWNLOAD_CALLBACK))
    app.add_handler(CallbackQueryHandler(handlers.on_movie_details, pattern=DETAILS_CALLBACK))
    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, handlers.handle_message))
    app.add_error_handler(handlers.on_error)
    return app


def main() -> None:
    config = load_config()
    setup_logging(config.log_level)
    if not config.bot_token:
        raise SystemExit("BOT_TOKEN not set.")

    app = build_app(config)
    logging.info("Bot is running...")
    app.run_polling(allowed_updates=Update.ALL_TYPES, drop_pending_updates=True, close_loop=False)


if __name__ == "__main__":
    main()
