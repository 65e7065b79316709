import logging
from dataclasses import dataclass
from typing import List, Optional

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, InputMediaPhoto, Message, Update
from telegram.constants import ChatAction
from telegram.error import TelegramError
from telegram.ext import ContextTypes

from .config import Config
from .downloader import DownloadedFile, Downloader, ResolvedQuality, VideoInfo, probe_video
from .errors import ErrorKind, MediaBotError
from .movies import MovieCatalog, MovieSummary
from .photo_post import PhotoPost, PhotoPostFetcher, is_photo_post
from .stores import LinkTokenStore, SearchResultStore
from .texts import error_text, pick_lang, t
from .utils import extract_url, is_tiktok, is_youtube, remove_file

CAPTION_LIMIT = 1024
QUALITY_ROWS = (("720", "480", "360"), ("best", "mp3"))
QUALITY_LABELS = {"720": "720p", "480": "480p", "360": "360p", "best": "⭐ Best", "mp3": "🎧 MP3"}


@dataclass
class Services:
    config: Config
    downloader: Downloader
    links: LinkTokenStore
    searches: SearchResultStore
    catalog: MovieCatalog
    photos: PhotoPostFetcher


def get_services(context: ContextTypes.DEFAULT_TYPE) -> Services:
    return context.bot_data["services"]


def user_lang(update: Update) -> str:
    user = update.effective_user
    return pick_lang(user.language_code if user else None)


def is_authorized(update: Update, config: Config) -> bool:
    if not config.allowed_ids:
        return True
    return bool(update.effective_user and update.effective_user.id in config.allowed_ids)


def quality_keyboard(token: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup([
        [InlineKeyboardButton(QUALITY_LABELS[q], callback_data=f"dl:{q}:{token}") for q in row]
        for row in QUALITY_ROWS
    ])


def movie_keyboard(items: List[MovieSummary]) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup([
        [InlineKeyboardButton(f"{i}. {m.title[:40]} ({m.year})", callback_data=f"mv:{i}")]
        for i, m in enumerate(items, start=1)
    ])


def format_movie(movie: MovieSummary, lang: str) -> str:
    text = f"🎬 {movie.title} ({movie.year})\n⭐ {movie.rating}\n\n{movie.overview or t(lang, 'no_overview')}"
    if len(text) > CAPTION_LIMIT:
        text = text[:CAPTION_LIMIT - 1] + "…"
    return text


def quality_note(lang: str, resolved: Optional[ResolvedQuality]) -> Optional[str]:
    if resolved is None or not resolved.substituted:
        return None
    if resolved.height is None:
        return t(lang, "quality_best", requested=resolved.requested)
    return t(lang, "quality_substituted", requested=resolved.requested, used=resolved.label)


# ---- Telegram call wrappers: failures here are cosmetic ----

async def safe_answer(query, text: Optional[str] = None) -> None:
    try:
        await query.answer(text)
    except TelegramError as e:
        logging.info("Could not answer callback query: %s", e)


async def safe_edit(message: Optional[Message], text: str) -> None:
    if message is None:
        return
    try:
        await message.edit_text(text)
    except TelegramError as e:
        logging.info("Could not edit status message: %s", e)


async def safe_reply(message: Optional[Message], text: str) -> None:
    if not isinstance(message, Message):
        # callback messages older than 48h arrive as InaccessibleMessage
        return
    try:
        await message.reply_text(text)
    except TelegramError as e:
        logging.info("Could not reply: %s", e)


async def safe_delete(message: Optional[Message]) -> None:
    if message is None:
        return
    try:
        await message.delete()
    except TelegramError as e:
        logging.info("Could not delete status message: %s", e)


async def safe_action(update: Update, action: str) -> None:
    try:
        await update.effective_chat.send_action(action)
    except TelegramError as e:
        logging.info("Could not send chat action: %s", e)


# ---- Handlers ----

async def start(update: Update, context: ContextTypes.DEFAULT_TYPE):
    services = get_services(context)
    lang = user_lang(update)
    if not is_authorized(update, services.config):
        await update.effective_message.reply_text(t(lang, "not_allowed"))
        return
    await update.effective_message.reply_text(t(lang, "start", max_mb=services.config.max_file_size_mb))


async def handle_message(update: Update, context: ContextTypes.DEFAULT_TYPE):
    services = get_services(context)
    lang = user_lang(update)
    message = update.effective_message
    if not is_authorized(update, services.config):
        await message.reply_text(t(lang, "not_allowed"))
        return

    url = extract_url(message.text or "")
    if not url or not (is_youtube(url) or is_tiktok(url)):
        await message.reply_text(t(lang, "send_link"))
        return

    status = None
    try:
        status = await message.reply_text(t(lang, "fetching"))
        await safe_action(update, ChatAction.TYPING)

        if is_tiktok(url):
            url = await services.photos.resolve_url(url)
            if is_photo_post(url):
                await safe_edit(status, t(lang, "photos_fetching"))
                post = await services.photos.fetch_photo_post(url)
                await send_photo_post(message, post, services.photos)
                await safe_delete(status)
                return

        info = await services.downloader.fetch_metadata(url)
        token = services.links.put(url)
        await send_quality_choice(message, info, token, lang)
        await safe_delete(status)

    except MediaBotError as e:
        logging.warning("Link %s failed: %s (%s)", url, e.kind.value, e.detail)
        await safe_edit(status, error_text(lang, e.kind, max_mb=services.config.max_file_size_mb))
    except Exception as e:
        logging.exception("Unexpected error for %s: %s", url, e)
        await safe_edit(status, error_text(lang, ErrorKind.UNKNOWN))


async def send_quality_choice(message: Message, info: VideoInfo, token: str, lang: str) -> None:
    caption = t(lang, "choose_quality", title=info.title, duration=info.duration_label)[:CAPTION_LIMIT]
    markup = quality_keyboard(token)
    if info.thumbnail_url:
        try:
            await message.reply_photo(photo=info.thumbnail_url, caption=caption, reply_markup=markup)
            return
        except TelegramError as e:
            logging.info("Thumbnail rejected (%s), sending text instead", e)
    await message.reply_text(caption, reply_markup=markup)


async def send_photo_post(message: Message, post: PhotoPost, photos: PhotoPostFetcher) -> None:
    images = await photos.download_images(post.image_urls)
    if not images:
        raise MediaBotError(ErrorKind.IMAGES_NOT_FOUND, "all image downloads failed")
    caption = post.title[:CAPTION_LIMIT]
    if len(images) == 1:
        await message.reply_photo(photo=images[0], caption=caption)
        return
    media = [InputMediaPhoto(media=img, caption=caption if i == 0 else None) for i, img in enumerate(images)]
    await message.reply_media_group(media=media)


async def on_download(update: Update, context: ContextTypes.DEFAULT_TYPE):
    services = get_services(context)
    lang = user_lang(update)
    query = update.callback_query
    if not is_authorized(update, services.config):
        await safe_answer(query, t(lang, "not_allowed"))
        return
    await safe_answer(query)

    _, quality, token = query.data.split(":", 2)
    url = services.links.get(token)
    downloaded = None
    status = None
    try:
        if url is None:
            await safe_reply(query.message, error_text(lang, ErrorKind.LINK_EXPIRED))
            return

        status = await query.message.reply_text(t(lang, "fetching"))
        info = await services.downloader.fetch_metadata(url)

        label = "mp3"
        if quality != "mp3":
            resolved = services.downloader.resolve_quality(quality, info.available_heights)
            label = resolved.label
            note = quality_note(lang, resolved)
            if note:
                await query.message.reply_text(note)

        await safe_edit(status, t(lang, "downloading", title=info.title, quality=label))
        await safe_action(update, ChatAction.UPLOAD_VOICE if quality == "mp3" else ChatAction.UPLOAD_VIDEO)
        downloaded = await services.downloader.download(
            url, quality, info.title, info.available_heights, info.content_id or None
        )
        await send_downloaded(query.message, downloaded, info, lang, services.config)
        await safe_delete(status)

    except MediaBotError as e:
        logging.warning("Download of %s (%s) failed: %s (%s)", url, quality, e.kind.value, e.detail)
        await safe_edit(status, error_text(lang, e.kind, max_mb=services.config.max_file_size_mb))
    except TelegramError as e:
        logging.exception("Telegram send error: %s", e)
        await safe_edit(status, t(lang, "send_failed"))
    except Exception as e:
        logging.exception("Unexpected error for %s: %s", url, e)
        await safe_edit(status, error_text(lang, ErrorKind.UNKNOWN))
    finally:
        if downloaded is not None:
            remove_file(downloaded.path)


async def send_downloaded(message: Message, downloaded: DownloadedFile, info: VideoInfo, lang: str, config: Config) -> None:
    path = downloaded.path
    size_mb = path.stat().st_size / (1024 * 1024)
    caption = t(lang, "done", title=info.title, size_mb=size_mb)[:CAPTION_LIMIT]
    timeouts = {"read_timeout": config.timeout_seconds, "write_timeout": config.timeout_seconds}

    if downloaded.audio:
        with path.open("rb") as f:
            await message.reply_audio(audio=f, title=info.title, caption=caption, filename=path.name, **timeouts)
        return

    meta = await probe_video(path)
    with path.open("rb") as f:
        await message.reply_video(
            video=f,
            caption=caption,
            filename=path.name,
            width=meta.get("width"),
            height=meta.get("height"),
            duration=meta.get("duration"),
            supports_streaming=True,
            **timeouts,
        )


async def movie_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    services = get_services(context)
    lang = user_lang(update)
    message = update.effective_message
    if not is_authorized(update, services.config):
        await message.reply_text(t(lang, "not_allowed"))
        return

    query = " ".join(context.args or []).strip()
    if not query:
        await message.reply_text(t(lang, "movie_usage"))
        return

    try:
        await safe_action(update, ChatAction.TYPING)
        items = await services.catalog.search(query)
    except MediaBotError as e:
        logging.warning("Movie search %r failed: %s", query, e.kind.value)
        await message.reply_text(error_text(lang, e.kind, max_mb=services.config.max_file_size_mb))
        return
    except Exception as e:
        logging.exception("Movie search %r failed: %s", query, e)
        await message.reply_text(error_text(lang, ErrorKind.UNKNOWN))
        return

    if not items:
        await message.reply_text(t(lang, "movie_nothing", query=query))
        return

    services.searches.put(update.effective_chat.id, query, items)
    lines = [t(lang, "movie_results", query=query)]
    lines += [f"{i}. {m.title} ({m.year}) ⭐ {m.rating}" for i, m in enumerate(items, start=1)]
    await message.reply_text("\n".join(lines), reply_markup=movie_keyboard(items))


async def on_movie_details(update: Update, context: ContextTypes.DEFAULT_TYPE):
    services = get_services(context)
    lang = user_lang(update)
    query = update.callback_query
    if not is_authorized(update, services.config):
        await safe_answer(query, t(lang, "not_allowed"))
        return
    await safe_answer(query)

    try:
        index = int(query.data.split(":", 1)[1])
        chat_id = update.effective_chat.id
        try:
            movie = services.searches.item(chat_id, index)
        except IndexError:
            entry = services.searches.get(chat_id)
            count = len(entry.items) if entry else 0
            await query.message.reply_text(t(lang, "details_range", count=count))
            return
        if movie is None:
            await query.message.reply_text(t(lang, "search_expired"))
            return

        text = format_movie(movie, lang)
        if movie.poster_url:
            await query.message.reply_photo(photo=movie.poster_url, caption=text)
        else:
            await query.message.reply_text(text)
    except Exception as e:
        logging.exception("Movie details failed: %s", e)
        await query.message.reply_text(error_text(lang, ErrorKind.UNKNOWN))


async def on_error(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    logging.error("Unhandled error while processing update %s", update, exc_info=context.error)
