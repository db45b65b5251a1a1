# models/agent_models.py
"""Define inter-stage payload shapes for the per-page pipeline.

Model-facing outputs (`AnalystOutput`, `DirectorOutput`) are Pydantic models so
responses are validated at the service boundary. The pipeline state carried
through the LangGraph page graph is a `TypedDict`.

Notes:
    `PageState` uses `total=False`; nodes return partial updates that LangGraph
    merges into the running state.
"""

from __future__ import annotations

from typing import TypedDict

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models.kg_models import GraphAnalysis, KnowledgeGraph
from models.narrative_models import Beat, ImageAsset, Ledger, LedgerDelta, SceneConfig


class GraphMutation(BaseModel):
    """A structured relationship change requested by the Analyst."""

    source: str
    target: str
    relation: str = "relates"
    delta: int = Field(0, ge=-30, le=30)


class AnalystOutput(BaseModel):
    """Strategic plan for one page."""

    model_config = ConfigDict(extra="ignore")

    narrative_phase: str = Field(min_length=1)
    strategy: str = Field(min_length=1)
    target_emotion: str = Field(min_length=1)
    graph_intent: str = Field(min_length=1)
    graph_mutation: GraphMutation | None = None

    @classmethod
    def fallback(cls) -> AnalystOutput:
        """The neutral plan used whenever the Analyst stage fails."""
        return cls(
            narrative_phase="Survival",
            strategy="Endure",
            target_emotion="Fear",
            graph_intent="Maintain",
        )


class Script(BaseModel):
    caption: str = ""
    dialogue: str = ""
    speaker: str = ""


class Visuals(BaseModel):
    camera: str = ""
    lighting: str = ""
    pose: str = ""
    environment: str = ""


class DirectorOutput(BaseModel):
    """Concrete script and shot directives for one page."""

    model_config = ConfigDict(extra="ignore")

    script: Script
    visuals: Visuals
    choices: list[str] = Field(default_factory=list)

    @field_validator("choices")
    @classmethod
    def _strip_choices(cls, value: list[str]) -> list[str]:
        return [c.strip() for c in value if c and c.strip()]

    @classmethod
    def fallback(cls) -> DirectorOutput:
        """Structurally complete, empty output used whenever the Director stage fails."""
        return cls(script=Script(), visuals=Visuals(), choices=[])


class PageState(TypedDict, total=False):
    """Running state of one page through analyst, director, render and feedback."""

    page_index: int
    generation: int
    is_decision: bool
    scene: SceneConfig
    ledger: Ledger
    graph: KnowledgeGraph
    graph_analysis: GraphAnalysis
    history: str
    analyst: AnalystOutput
    director: DirectorOutput
    beat: Beat
    image: ImageAsset | None
    image_ok: bool
    ledger_delta: LedgerDelta
    plan_only: bool
