# main.py
import argparse
import asyncio
import mimetypes
import os
from pathlib import Path

import structlog

import config
from config.validator import validate_all
from core.exceptions import ConfigurationError
from core.generative_services import gemini_service_context
from core.logging_config import setup_loom_logging
from models.narrative_models import Archetype, ImageAsset, Persona
from orchestration.generation_scheduler import GenerationScheduler, build_scheduler

logger = structlog.get_logger(__name__)


def _load_image(path: str | None) -> ImageAsset | None:
    if not path:
        return None
    mime_type, _ = mimetypes.guess_type(path)
    return ImageAsset(data=Path(path).read_bytes(), mime_type=mime_type or "image/png")


async def _advance(scheduler: GenerationScheduler) -> bool:
    """Answer the oldest open decision page, or continue past the last page.

    Returns:
        True when a new batch was generated.
    """
    pages = scheduler.store.pages
    if not pages:
        return False
    pending = [
        face
        for face in pages
        if face.is_decision_page and face.resolved_choice is None and not face.is_loading
    ]
    if pending:
        target = pending[0]
        choice = target.choices[0] if target.choices else "Continue"
        generated = await scheduler.handle_choice(target.page_index, choice)
    else:
        generated = await scheduler.continue_story()
    return bool(generated)


def _back_cover_done(scheduler: GenerationScheduler) -> bool:
    back = scheduler.store.get_page(config.BACK_COVER_PAGE)
    return back is not None and not back.is_loading


async def run_story(args: argparse.Namespace) -> int:
    report = validate_all()
    for issue in report["issues"]["warnings"]:
        logger.warning("Configuration warning", **issue)
    if report["overall_health"] == "error":
        raise ConfigurationError("Configuration is invalid", details={"errors": report["issues"]["errors"]})

    async with gemini_service_context() as services:
        scheduler = build_scheduler(services.text, services.image, services.speech)
        store = scheduler.store
        store.set_sound_enabled(not args.no_sound)
        store.set_hero(
            Persona(
                name=args.name,
                archetype=Archetype.SUBJECT,
                bio=args.bio,
                core_fear=args.fear,
                image=_load_image(args.image),
            )
        )
        if args.friend_name:
            store.set_friend(
                Persona(name=args.friend_name, archetype=Archetype.ALLY, image=_load_image(args.friend_image))
            )

        await scheduler.start_story(args.name, args.fear)
        while not _back_cover_done(scheduler):
            if not await _advance(scheduler):
                logger.warning("No further pages could be scheduled", pages=len(store.pages))
                break
        await scheduler.wait_for_background()

        output = Path(args.output or os.path.join(config.BASE_OUTPUT_DIR, config.EXPORT_FILE_NAME))
        written = scheduler.export_document(output)
        logger.info("Story exported", path=str(output), pages=written)
        return written


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate an interactive illustrated story and export it as a PDF.")
    parser.add_argument("name", help="Protagonist name")
    parser.add_argument("--fear", default="Being forgotten", help="Protagonist core fear")
    parser.add_argument("--bio", default="", help="Short protagonist description")
    parser.add_argument("--image", default=None, help="Path to a protagonist reference image")
    parser.add_argument("--friend-name", default=None, help="Name of the Ally persona")
    parser.add_argument("--friend-image", default=None, help="Path to an Ally reference image")
    parser.add_argument("--no-sound", action="store_true", help="Skip speech synthesis")
    parser.add_argument("--output", default=None, help="PDF path (default: BASE_OUTPUT_DIR/EXPORT_FILE_NAME)")
    args = parser.parse_args()

    setup_loom_logging()

    try:
        asyncio.run(run_story(args))
    except KeyboardInterrupt:
        logger.info("Loom shutting down gracefully due to KeyboardInterrupt...")
    except Exception as main_err:  # pragma: no cover - entry point catch
        logger.critical(f"Loom encountered an unhandled main exception: {main_err}", exc_info=True)


if __name__ == "__main__":
    main()
