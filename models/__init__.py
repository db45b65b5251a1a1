# models/__init__.py
"""Export commonly used Loom model types.

This package exposes a stable import surface for the Pydantic models and
`TypedDict` payload shapes used across the pipeline.
"""

from .agent_models import (
    AnalystOutput,
    DirectorOutput,
    GraphMutation,
    PageState,
    Script,
    Visuals,
)
from .kg_models import (
    GraphAnalysis,
    GraphEdge,
    GraphNode,
    KnowledgeGraph,
    NodeType,
    default_knowledge_graph,
)
from .narrative_models import (
    Archetype,
    AudioAsset,
    Beat,
    ComicFace,
    ImageAsset,
    Ledger,
    LedgerDelta,
    PageType,
    Persona,
    SceneConfig,
    face_id,
)

__all__ = [
    "AnalystOutput",
    "DirectorOutput",
    "GraphMutation",
    "PageState",
    "Script",
    "Visuals",
    "GraphAnalysis",
    "GraphEdge",
    "GraphNode",
    "KnowledgeGraph",
    "NodeType",
    "default_knowledge_graph",
    "Archetype",
    "AudioAsset",
    "Beat",
    "ComicFace",
    "ImageAsset",
    "Ledger",
    "LedgerDelta",
    "PageType",
    "Persona",
    "SceneConfig",
    "face_id",
]
