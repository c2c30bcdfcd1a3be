from __future__ import annotations

import logging
import sys

from telegram import BotCommand, BotCommandScopeAllPrivateChats, BotCommandScopeDefault
from telegram.ext import Application, CallbackQueryHandler, CommandHandler, MessageHandler, filters

from healthbot.advisory import AdvisoryService
from healthbot.checklist import SymptomChecklist
from healthbot.config import (
    DATASET1_PATH,
    DATASET2_PATH,
    DB_PATH,
    ConfigError,
    ensure_data_dirs,
    load_config,
)
from healthbot.database import TranscriptStore
from healthbot.datasets import DatasetError, SymptomReference
from healthbot.dialogue import DialogueManager
from healthbot.facilities import FacilityFinder
from healthbot.handlers import (
    callback_query_handler,
    help_command,
    location_message_handler,
    lookup_command,
    start_command,
    text_message_handler,
)
from healthbot.profile import ProfileAssembler
from healthbot.sessions import SessionStore

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    # httpx logs every request URL at INFO, which would leak the Places API key.
    logging.getLogger("httpx").setLevel(logging.WARNING)


async def _post_init_set_commands(app: Application) -> None:
    commands = [
        BotCommand("start", "Start a health screening"),
        BotCommand("lookup", "Search the symptom reference data"),
        BotCommand("help", "Show available commands"),
    ]

    scopes = [BotCommandScopeDefault(), BotCommandScopeAllPrivateChats()]
    for scope in scopes:
        await app.bot.delete_my_commands(scope=scope)
        await app.bot.set_my_commands(commands, scope=scope)

    logger.info("Telegram command menu updated for default/private scopes")


async def _post_shutdown_close_clients(app: Application) -> None:
    facilities: FacilityFinder = app.bot_data["facilities"]
    await facilities.aclose()


def build_application() -> Application:
    ensure_data_dirs()
    config = load_config()
    reference = SymptomReference.load(DATASET1_PATH, DATASET2_PATH)

    checklist = SymptomChecklist(reference.top_symptoms(config.symptom_checklist_size))
    logger.info("Symptom checklist: %s", ", ".join(checklist.symptoms) or "(empty)")

    transcripts: TranscriptStore | None = None
    if config.store_transcripts:
        transcripts = TranscriptStore(DB_PATH)
        transcripts.init()
    else:
        logger.warning("STORE_TRANSCRIPTS is off. Completed screenings will not be saved.")

    advisory = AdvisoryService(
        api_key=config.openai_api_key,
        model=config.openai_model,
        timeout_seconds=config.advisory_timeout_seconds,
    )
    facilities = FacilityFinder(
        api_key=config.google_places_api_key,
        radius_m=config.facility_search_radius_m,
    )
    dialogue = DialogueManager(
        sessions=SessionStore(),
        checklist=checklist,
        assembler=ProfileAssembler(reference),
        advisory=advisory,
        facilities=facilities,
        transcripts=transcripts,
    )

    app = (
        Application.builder()
        .token(config.telegram_bot_token)
        .concurrent_updates(True)
        .post_init(_post_init_set_commands)
        .post_shutdown(_post_shutdown_close_clients)
        .build()
    )

    app.bot_data["reference"] = reference
    app.bot_data["dialogue"] = dialogue
    app.bot_data["facilities"] = facilities

    app.add_handler(CommandHandler("start", start_command))
    app.add_handler(CommandHandler("help", help_command))
    app.add_handler(CommandHandler("lookup", lookup_command))

    app.add_handler(CallbackQueryHandler(callback_query_handler))
    app.add_handler(MessageHandler(filters.LOCATION, location_message_handler))
    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, text_message_handler))

    return app


def main() -> None:
    configure_logging()

    try:
        app = build_application()
    except (ConfigError, DatasetError) as exc:
        logging.error("Startup failed: %s", exc)
        sys.exit(1)

    app.run_polling(drop_pending_updates=True)


if __name__ == "__main__":
    main()
