"""Tool orchestration for one chat turn.

A direct scripture reference takes the fast path: the passage and its helps
are fetched without consulting the model. Anything else (or a fast path
that found nothing) goes to the model with the fixed tool schema; the calls
it selects run concurrently and are joined before aggregation, so the
aggregate follows call order even though completions interleave.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from bible_study_engine.core.config import config
from bible_study_engine.core.intents import Intent, NavigationHint
from bible_study_engine.core.logging import get_logger
from bible_study_engine.core.models import (
    LocatedSearch,
    Note,
    ScripturePassage,
    SearchResults,
    ToolCall,
    TraceEvent,
    VerseMatch,
    resource_counts,
)
from bible_study_engine.core.ports import LLMPort
from bible_study_engine.services.context import RequestContext
from bible_study_engine.services.intent_classifier import IntentClassifier, intent_guidance
from bible_study_engine.services.prompts import CHAT_TOOLS, TOOL_SELECTION_SYSTEM_PROMPT
from bible_study_engine.services.tool_executor import (
    NOTE_TOOLS,
    NOTES_TOOL,
    QUESTIONS_TOOL,
    RESOURCE_TOOLS,
    SCRIPTURE_TOOL,
    SEARCH_TOOL,
    SEARCH_TOOLS,
    WORD_LINKS_TOOL,
    ToolExecutor,
    ToolResult,
)

logger = get_logger(__name__)

ENTITY = "orchestrator"


@dataclass(slots=True)
class OrchestrationResult:
    """Everything the response emitter needs about one turn."""

    resources: list[Any] = field(default_factory=list)
    scripture: Optional[ScripturePassage] = None
    scripture_reference: Optional[str] = None
    navigation_hint: Optional[NavigationHint] = None
    tool_calls: list[ToolCall] = field(default_factory=list)
    search_matches: list[VerseMatch] = field(default_factory=list)
    search_query: Optional[str] = None
    search_results: Optional[SearchResults] = None
    located: Optional[LocatedSearch] = None
    notes: list[Note] = field(default_factory=list)
    intent: Optional[Intent] = None
    used_fallback: bool = False
    traces: list[TraceEvent] = field(default_factory=list)

    @property
    def scripture_text(self) -> Optional[str]:
        """Raw passage text, when a passage was fetched."""
        return self.scripture.text if self.scripture else None

    @property
    def resource_counts(self) -> dict[str, int]:
        """Upstream resources counted by kind."""
        return resource_counts(self.resources)

    def is_empty(self) -> bool:
        """True when no tool produced anything displayable."""
        return (
            self.scripture is None
            and not self.resources
            and not self.search_matches
            and self.search_results is None
            and not self.notes
        )


def derive_navigation_hint(calls: Sequence[ToolCall]) -> Optional[NavigationHint]:
    """Pick the panel to focus from the tools that fired."""
    tools = {call.tool for call in calls}
    if tools & NOTE_TOOLS:
        return NavigationHint.NOTES
    if tools & SEARCH_TOOLS or any(call.args.get("filter") for call in calls):
        return NavigationHint.SEARCH
    if SCRIPTURE_TOOL in tools:
        return NavigationHint.SCRIPTURE
    if tools & RESOURCE_TOOLS:
        return NavigationHint.RESOURCES
    return None


def derive_search_query(calls: Sequence[ToolCall]) -> Optional[str]:
    """The filter term or search query behind a turn, if any."""
    for call in calls:
        term = call.args.get("filter")
        if term:
            return str(term)
        if call.tool in SEARCH_TOOLS and call.args.get("query"):
            return str(call.args["query"])
    return None


def aggregate(
    recorded: Sequence[ToolCall],
    results: Sequence[ToolResult],
    *,
    intent: Optional[Intent] = None,
) -> OrchestrationResult:
    """Combine settled tool results in call order."""
    outcome = OrchestrationResult(tool_calls=list(recorded), intent=intent)
    for result in results:
        if result.error:
            logger.info("[orchestrator] %s reported: %s", result.call.tool, result.error)
        if outcome.scripture is None and result.scripture is not None:
            outcome.scripture = result.scripture
        if outcome.search_results is None and result.search_results is not None:
            outcome.search_results = result.search_results
        if outcome.located is None and result.located is not None:
            outcome.located = result.located
        outcome.resources.extend(result.resources)
        outcome.search_matches.extend(result.search_matches)
        outcome.notes.extend(result.notes)
        outcome.used_fallback = outcome.used_fallback or result.used_fallback

    outcome.navigation_hint = derive_navigation_hint(recorded)
    outcome.search_query = derive_search_query(recorded)
    if outcome.scripture is not None:
        outcome.scripture_reference = outcome.scripture.reference
    else:
        outcome.scripture_reference = next(
            (str(call.args["reference"]) for call in recorded
             if call.tool == SCRIPTURE_TOOL and call.args.get("reference")),
            None,
        )
    return outcome


def build_tool_selection_messages(
    message: str,
    history: Sequence[dict[str, Any]],
    intent: Optional[Intent],
    scripture_context: Optional[str] = None,
) -> list[dict[str, Any]]:
    """System prompt, trimmed history and the current user turn."""
    limit = config.CONVERSATION_HISTORY_LIMIT
    recent = list(history)[-limit:] if limit > 0 else []
    user_content = message
    if scripture_context:
        user_content = f"{message}\n\nCurrent context: {scripture_context}"
    return [
        {"role": "system", "content": f"{TOOL_SELECTION_SYSTEM_PROMPT}\n\n{intent_guidance(intent)}"},
        *recent,
        {"role": "user", "content": user_content},
    ]


class ToolOrchestrator:
    """Decide which tools a message needs, run them and aggregate the results."""

    def __init__(self, llm: LLMPort, executor: ToolExecutor, classifier: IntentClassifier) -> None:
        self.llm = llm
        self.executor = executor
        self.classifier = classifier

    async def orchestrate(
        self,
        message: str,
        history: Sequence[dict[str, Any]],
        ctx: RequestContext,
        *,
        scripture_context: Optional[str] = None,
    ) -> OrchestrationResult:
        """Run one turn; LLM gateway errors propagate, upstream errors do not."""
        ctx.tracer.trace(ENTITY, "start", message=message[:80])
        classification = await self.classifier.classify(message)
        recorded: list[ToolCall] = []
        results: list[ToolResult] = []

        if classification.is_reference:
            direct = await self._direct_fetch(message.strip(), ctx)
            if not direct.is_empty():
                ctx.tracer.trace(ENTITY, "complete", message="direct fetch")
                direct.traces = ctx.tracer.events
                return direct
            logger.info("[orchestrator] direct fetch found nothing; asking the model")
            recorded.extend(direct.tool_calls)

        intent = classification.intent or Intent.READ
        messages = build_tool_selection_messages(message, history, intent, scripture_context)
        ctx.tracer.trace("tool-selection", "start")
        try:
            selection = await self.llm.select_tools(messages, CHAT_TOOLS)
        except Exception as exc:
            ctx.tracer.trace("tool-selection", "error", message=str(exc))
            ctx.tracer.trace(ENTITY, "error", message=str(exc))
            raise
        ctx.tracer.trace("tool-selection", "complete", metadata={"calls": len(selection.tool_calls)})

        calls = list(selection.tool_calls)
        if not calls:
            logger.info("[orchestrator] no tool calls; falling back to search")
            calls = [ToolCall(tool=SEARCH_TOOL, args={"query": message})]
        recorded.extend(calls)
        results.extend(await asyncio.gather(*(self.executor.execute(call, ctx) for call in calls)))

        outcome = aggregate(recorded, results, intent=classification.intent)
        logger.info(
            "[orchestrator] %d resources, scripture=%s, query=%s, hint=%s",
            len(outcome.resources),
            outcome.scripture_reference,
            outcome.search_query,
            outcome.navigation_hint.value if outcome.navigation_hint else None,
        )
        ctx.tracer.trace(ENTITY, "complete")
        outcome.traces = ctx.tracer.events
        return outcome

    async def _direct_fetch(self, reference: str, ctx: RequestContext) -> OrchestrationResult:
        """Fetch a passage and its helps concurrently, recording one signature."""
        signature = ToolCall(tool=SCRIPTURE_TOOL, args={"reference": reference})
        companions = [
            ToolCall(tool=NOTES_TOOL, args={"reference": reference}),
            ToolCall(tool=QUESTIONS_TOOL, args={"reference": reference}),
            ToolCall(tool=WORD_LINKS_TOOL, args={"reference": reference}),
        ]
        logger.info("[orchestrator] direct fetch for %s", reference)
        results = await asyncio.gather(
            *(self.executor.execute(call, ctx) for call in (signature, *companions))
        )
        return aggregate([signature], results)


__all__ = [
    "OrchestrationResult",
    "ToolOrchestrator",
    "aggregate",
    "build_tool_selection_messages",
    "derive_navigation_hint",
    "derive_search_query",
]
