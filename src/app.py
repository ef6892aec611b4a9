"""Application entry point for mockingbird."""

from __future__ import annotations

import argparse
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

from art import tprint
from dotenv import load_dotenv
from telethon import errors, events, utils

import settings
from adapters.sqlite_storage import SQLiteStorage
from adapters.telegram_mapper import event_from_chat_action, event_from_new_message
from adapters.telegram_poster import TelegramPoster
from adapters.telegram_source import TelegramMessageSource
from client import build_client
from core.config import EmissionConfig, MarkovConfig, RateLimitConfig, RefreshConfig, SyncConfig
from core.frequency import FrequencyGate
from core.markov import MarkovModel
from core.processor import EventProcessor
from core.rate_limit import PostRateLimiter
from core.scheduler import Scheduler
from core.source_keys import entity_ref_from_source_key
from core.sync import CorpusSynchronizer
from core.tokenizer import TokenizerAdapter
from core.trainer import CorpusTrainer

NAME = "MOCKINGBIRD"
FONT = "tarty-1"

LOGGER = logging.getLogger(__name__)


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    """Mask secret values (API hash, session name) wherever they show up."""

    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _redaction_values(config: dict) -> list[str]:
    redact_cfg = config.get("redact", {})
    if not redact_cfg.get("enabled", False):
        return []
    values = {os.getenv(name) for name in redact_cfg.get("patterns", [])}
    # Longest first so a secret containing another is masked whole.
    return sorted((value for value in values if value), key=len, reverse=True)


def _file_handler(file_cfg: dict) -> logging.Handler:
    path = file_cfg.get("path", "logs/mockingbird.log")
    if not os.path.isabs(path):
        path = os.path.join(settings.PROJECT_ROOT, path)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    return RotatingFileHandler(
        path,
        maxBytes=int(file_cfg.get("max_bytes", 5 * 1024 * 1024)),
        backupCount=int(file_cfg.get("backup_count", 5)),
        encoding="utf-8",
    )


def _configure_logging() -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", False):
        return

    load_dotenv()
    level = getattr(logging, str(config.get("level", "INFO")).upper(), logging.INFO)
    formatter = _RedactingFormatter(
        _redaction_values(config),
        fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    handlers: list[logging.Handler] = []
    if config.get("console", True):
        handlers.append(logging.StreamHandler())
    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        handlers.append(_file_handler(file_cfg))
    if not handlers:
        return

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
    logging.basicConfig(level=level, handlers=handlers)
    # Telethon is chatty at INFO (reconnects, updates); keep it to warnings.
    logging.getLogger("telethon").setLevel(max(level, logging.WARNING))


def _sync_config() -> SyncConfig:
    return SyncConfig(
        page_size=settings.SYNC_PAGE_SIZE,
        page_interval_ms=settings.SYNC_PAGE_INTERVAL_MS,
        backward_extension=settings.SYNC_BACKWARD_EXTENSION,
        max_backward_passes=settings.SYNC_MAX_BACKWARD_PASSES,
    )


def _markov_config() -> MarkovConfig:
    return MarkovConfig(
        order=settings.MARKOV_ORDER,
        max_tokens=settings.MARKOV_MAX_TOKENS,
        snapshots=settings.MARKOV_SNAPSHOTS,
        snapshot_max_age_hours=settings.MARKOV_SNAPSHOT_MAX_AGE_HOURS,
    )


async def _resolve_channel_id(client, source_key: str) -> str:
    peer = await client.get_input_entity(entity_ref_from_source_key(source_key))
    return str(utils.get_peer_id(peer))


async def _build_synchronizers(client, storage: SQLiteStorage) -> list[CorpusSynchronizer]:
    """Resolve the target user and every source chat into synchronizers."""

    if not settings.TARGET_USER:
        raise RuntimeError("target_user is required in config.json")
    target = await client.get_input_entity(entity_ref_from_source_key(settings.TARGET_USER))

    sync_config = _sync_config()
    synchronizers: list[CorpusSynchronizer] = []
    for source_key in settings.SOURCES:
        try:
            peer = await client.get_input_entity(entity_ref_from_source_key(source_key))
        except (ValueError, errors.RPCError):
            LOGGER.exception("Failed to resolve source %s", source_key)
            continue
        source = TelegramMessageSource(client, peer, target, page_size=sync_config.page_size)
        synchronizers.append(
            CorpusSynchronizer(
                source,
                storage,
                sync_config,
                name=source_key,
                channel_id=str(utils.get_peer_id(peer)),
            )
        )

    if not synchronizers:
        raise RuntimeError("No usable sources configured; add at least one to config.json")
    LOGGER.info("%s sources are loaded", len(synchronizers))
    return synchronizers


async def _serve(client, storage: SQLiteStorage) -> None:
    """Wire the shared components and run until the client disconnects.

    Initialization order: model and frequency gate are created once here and
    shared by reference with the trainer, the event handlers and the scheduler.
    The model is bootstrapped before handlers are registered so the first
    replies already have a corpus behind them.
    """

    markov_config = _markov_config()
    model = MarkovModel(order=markov_config.order, max_tokens=markov_config.max_tokens)
    gate = FrequencyGate(storage, default_frequency=settings.DEFAULT_FREQUENCY)
    tokenizer = TokenizerAdapter(blocklist=settings.BLOCKLIST)
    rate_limit = RateLimitConfig(
        max_posts=settings.RATE_LIMIT_MAX_POSTS,
        window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
    )
    poster = TelegramPoster(
        client,
        PostRateLimiter(rate_limit.max_posts, rate_limit.window_seconds),
    )

    trainer = CorpusTrainer(
        model,
        tokenizer,
        storage,
        await _build_synchronizers(client, storage),
        markov_config,
    )
    await trainer.bootstrap()

    processor = EventProcessor(model, gate, poster)
    me = await client.get_me()

    @client.on(events.NewMessage(incoming=True))
    async def on_message(event) -> None:
        try:
            await processor.handle(await event_from_new_message(event))
        except Exception:
            LOGGER.exception("Error while processing message")

    @client.on(events.ChatAction)
    async def on_chat_action(event) -> None:
        try:
            inbound = event_from_chat_action(event, me.id)
            if inbound is not None:
                await processor.handle(inbound)
        except Exception:
            LOGGER.exception("Error while processing chat action")

    emission = EmissionConfig(
        enabled=settings.EMISSION_ENABLED,
        schedule=settings.EMISSION_SCHEDULE,
        jitter_minutes=settings.EMISSION_JITTER_MINUTES,
    )
    if emission.enabled:
        if not settings.EMISSION_CHAT:
            raise RuntimeError("emission.source_key is required when emission is enabled")
        emission_channel_id = await _resolve_channel_id(client, settings.EMISSION_CHAT)
    else:
        emission_channel_id = ""

    async def emit() -> None:
        await processor.reply(emission_channel_id)

    scheduler = Scheduler(
        refresh_job=trainer.refresh,
        emission_job=emit,
        refresh=RefreshConfig(enabled=settings.REFRESH_ENABLED, schedule=settings.REFRESH_SCHEDULE),
        emission=emission,
    )
    loops = scheduler.start()
    LOGGER.info("Scheduler started with %s loops", len(loops))

    LOGGER.info("Client connected as %s. Listening for incoming messages...", me.id)
    await client.run_until_disconnected()


async def _sync_once(client, storage: SQLiteStorage) -> None:
    # Watermarks are left alone: the next refresh still feeds these records.
    for synchronizer in await _build_synchronizers(client, storage):
        watermark = storage.get_sync_watermark(synchronizer.name)
        await synchronizer.sync(after=watermark)
    latest = storage.get_latest_message()
    LOGGER.info(
        "Stored messages: %s, newest at %s",
        storage.count_messages(),
        latest.created_at if latest else None,
    )


def _open_storage() -> SQLiteStorage:
    storage = SQLiteStorage(settings.DB_PATH)
    storage.init_db()
    return storage


def _run() -> None:
    _print_banner()
    _configure_logging()
    LOGGER.info("Starting mockingbird")

    storage = _open_storage()
    client = build_client()
    # Login (phone/code prompts) is left entirely to Telethon.
    client.start()
    try:
        client.loop.run_until_complete(_serve(client, storage))
    finally:
        client.disconnect()


def _sync() -> None:
    _configure_logging()
    storage = _open_storage()
    client = build_client()
    client.start()
    try:
        client.loop.run_until_complete(_sync_once(client, storage))
    finally:
        client.disconnect()


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="mockingbird")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the bot")
    subparsers.add_parser("sync", help="Synchronize the message corpus once and exit")

    args = parser.parse_args(argv)
    if args.command == "sync":
        _sync()
        return
    _run()


if __name__ == "__main__":
    main()
