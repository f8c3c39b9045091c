"""Assemble the per-turn LangGraph and wrap it as the dialog engine.

The graph runs once per inbound message; conversation state lives in the
ConversationStore between turns, so no checkpointer is attached.

Flow:
  START → load → check_confirmation →(cond)→ commit ─────────────┐
                                    →(cond)→ cancel ─────────────┤
                                    →(cond)→ generate            │
                                               ↓                 │
                                             detect              │
                                               ↓                 │
                                          refine_location        │
                                               ↓                 │
                                          arm_confirmation       │
                                               ↓                 │
                                             persist ←───────────┘
                                               ↓
                                              END
"""
from __future__ import annotations

import logging
from pathlib import Path

from langgraph.graph import END, START, StateGraph

from jirani.config import FALLBACK_INCIDENTS_PATH
from jirani.conversation.store import ConversationStore
from jirani.db.engine import get_connection, init_db
from jirani.db.repositories import (
    ConversationRepository,
    IncidentRepository,
    JsonFileIncidentRepository,
)
from jirani.detection.detector import IncidentDetector
from jirani.graph.edges import route_after_check_confirmation
from jirani.graph.nodes import DialogNodes
from jirani.graph.state import TurnState
from jirani.llm.client import LLMClient, build_llm_client
from jirani.models import InboundMessage, TurnResult
from jirani.pipeline.commit import CommitPipeline
from jirani.sanitizer import DescriptionSanitizer

logger = logging.getLogger(__name__)


def build_graph(nodes: DialogNodes):
    """Build and compile the turn graph around *nodes*."""
    builder = StateGraph(TurnState)

    # ── Nodes ────────────────────────────────────────────────────
    builder.add_node("load", nodes.load_node)
    builder.add_node("check_confirmation", nodes.check_confirmation_node)
    builder.add_node("commit", nodes.commit_node)
    builder.add_node("cancel", nodes.cancel_node)
    builder.add_node("generate", nodes.generate_node)
    builder.add_node("detect", nodes.detect_node)
    builder.add_node("refine_location", nodes.refine_location_node)
    builder.add_node("arm_confirmation", nodes.arm_confirmation_node)
    builder.add_node("persist", nodes.persist_node)

    # ── Edges ────────────────────────────────────────────────────
    builder.add_edge(START, "load")
    builder.add_edge("load", "check_confirmation")
    builder.add_conditional_edges("check_confirmation", route_after_check_confirmation)
    builder.add_edge("commit", "persist")
    builder.add_edge("cancel", "persist")
    builder.add_edge("generate", "detect")
    builder.add_edge("detect", "refine_location")
    builder.add_edge("refine_location", "arm_confirmation")
    builder.add_edge("arm_confirmation", "persist")
    builder.add_edge("persist", END)

    return builder.compile()


class DialogEngine:
    """Entry point of the core: one call per inbound message."""

    def __init__(self, nodes: DialogNodes) -> None:
        self.nodes = nodes
        self._graph = build_graph(nodes)

    async def handle(self, message: InboundMessage) -> TurnResult:
        """Run one turn. Only a double storage failure on commit raises."""
        result = await self._graph.ainvoke({"message": message})
        reply = result.get("reply") or ""
        logger.debug(
            "Turn for %s ended at %s", message.sender_id, result.get("current_node")
        )
        return TurnResult(
            reply_text=reply,
            confirmed_incident=result.get("confirmed_incident"),
        )


def build_engine(
    llm: LLMClient | None = None,
    db_path: Path | str | None = None,
    fallback_path: Path | str | None = None,
) -> DialogEngine:
    """Wire the default collaborators: SQLite, JSON fallback, configured model."""
    llm = llm or build_llm_client()
    init_db(db_path)
    conn = get_connection(db_path)

    store = ConversationStore(ConversationRepository(conn))
    pipeline = CommitPipeline(
        DescriptionSanitizer(llm),
        primary=IncidentRepository(conn),
        fallback=JsonFileIncidentRepository(fallback_path or FALLBACK_INCIDENTS_PATH),
    )
    nodes = DialogNodes(store, IncidentDetector(llm), llm, pipeline)
    return DialogEngine(nodes)
