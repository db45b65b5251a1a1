# tests/conftest.py
import os
import sys

import pytest

# Ensure repository root is on PYTHONPATH for tests
repo_root = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if repo_root not in sys.path:
    sys.path.insert(0, repo_root)

import config  # noqa: E402
from core.lore_tables import LoreTables, load_lore_tables  # noqa: E402
from core.narrative_store import NarrativeStore  # noqa: E402
from models.narrative_models import Archetype, ImageAsset, Persona  # noqa: E402
from orchestration.generation_scheduler import GenerationScheduler, build_scheduler  # noqa: E402
from tests.fakes.fake_generative_services import (  # noqa: E402
    FakeImageService,
    FakeSpeechService,
    FakeTextService,
    make_png,
)


def pytest_addoption(parser: pytest.Parser) -> None:
    """Add custom CLI options for this repo.

    --unit-stubs: skip tests marked as heavier (integration, slow) so a quick
    run only exercises the hermetic unit suites.
    """
    parser.addoption(
        "--unit-stubs",
        action="store_true",
        default=False,
        help="Run unit tests only; ignore heavier suites.",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """When --unit-stubs is passed, skip heavier-marked tests."""
    if not config.getoption("--unit-stubs"):
        return

    skip_marker = pytest.mark.skip(reason="skipped by --unit-stubs")
    heavy_markers = {"integration", "slow"}
    for item in items:
        for m in item.iter_markers():
            if m.name in heavy_markers:
                item.add_marker(skip_marker)
                break


@pytest.fixture(autouse=True)
def _fast_retries(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep retry backoff and timeouts short in every test."""
    monkeypatch.setattr(config, "LLM_RETRY_DELAY_SECONDS", 0)
    monkeypatch.setattr(config, "GENERATION_TIMEOUT_SECONDS", 5.0)


@pytest.fixture(scope="session")
def lore() -> LoreTables:
    return load_lore_tables()


@pytest.fixture
def text_service() -> FakeTextService:
    return FakeTextService()


@pytest.fixture
def image_service() -> FakeImageService:
    return FakeImageService()


@pytest.fixture
def speech_service() -> FakeSpeechService:
    return FakeSpeechService()


@pytest.fixture
def hero() -> Persona:
    return Persona(
        name="Mara",
        archetype=Archetype.SUBJECT,
        bio="A quiet first-year student",
        core_fear="Being forgotten",
        image=ImageAsset(data=make_png(32, 32, "white")),
    )


@pytest.fixture
def scheduler(
    text_service: FakeTextService,
    image_service: FakeImageService,
    speech_service: FakeSpeechService,
    lore: LoreTables,
    hero: Persona,
) -> GenerationScheduler:
    """A fully wired scheduler over fake services with the hero already set."""
    store = NarrativeStore()
    store.set_hero(hero)
    return build_scheduler(text_service, image_service, speech_service, store=store, lore=lore, spread_mode=False)
