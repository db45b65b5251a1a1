# tests/test_main.py
from unittest.mock import AsyncMock

import pytest

import main
from models.narrative_models import ComicFace, PageType


def _page(index: int, decision: bool = False, choices: list[str] | None = None, resolved: str | None = None) -> ComicFace:
    return ComicFace(
        id=f"page-{index}",
        type=PageType.STORY,
        page_index=index,
        is_loading=False,
        is_decision_page=decision,
        choices=choices or [],
        resolved_choice=resolved,
    )


@pytest.mark.asyncio
class TestAdvance:
    async def test_answers_open_decision_with_first_choice(self, scheduler, monkeypatch):
        scheduler.store.set_pages([_page(1), _page(3, decision=True, choices=["Defy", "Submit"]), _page(4)])
        handle = AsyncMock(return_value=[5])
        monkeypatch.setattr(scheduler, "handle_choice", handle)

        assert await main._advance(scheduler) is True
        handle.assert_awaited_once_with(3, "Defy")

    async def test_continues_from_last_page_without_open_decision(self, scheduler, monkeypatch):
        scheduler.store.set_pages([_page(3, decision=True, choices=["Defy"], resolved="Defy"), _page(4)])
        handle = AsyncMock(return_value=[])
        proceed = AsyncMock(return_value=[])
        monkeypatch.setattr(scheduler, "handle_choice", handle)
        monkeypatch.setattr(scheduler, "continue_story", proceed)

        assert await main._advance(scheduler) is False
        handle.assert_not_awaited()
        proceed.assert_awaited_once_with()

    async def test_empty_store(self, scheduler):
        assert await main._advance(scheduler) is False
