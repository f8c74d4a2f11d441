from dataclasses import dataclass, field, replace
from typing import Callable, Iterable

from core.config import PipelineSettings
from core.generation import GenerationClient
from interview_prep.schemas import ReasoningEntry

TraceSink = Callable[[list[ReasoningEntry]], None]


class ReasoningRecorder:
    """
    Buffers an agent's reasoning entries until the work they describe succeeds.

    ``flush`` hands the buffered entries to the sink (normally the job store) in
    one batch; entries of work that fails are never flushed.
    """

    def __init__(self, agent: str, sink: TraceSink | None = None, question_id: str | None = None):
        self.agent = agent
        self.question_id = question_id
        self._sink = sink
        self._pending: list[ReasoningEntry] = []

    def think(self, thought: str, sources: Iterable[str] = (), agent: str | None = None) -> ReasoningEntry:
        entry = ReasoningEntry(
            agent=agent or self.agent,
            thought=thought,
            sources_consulted=frozenset(sources),
            question_id=self.question_id,
        )
        self._pending.append(entry)
        return entry

    @property
    def pending(self) -> list[ReasoningEntry]:
        return list(self._pending)

    def flush(self) -> None:
        if not self._pending:
            return
        batch, self._pending = self._pending, []
        if self._sink is not None:
            self._sink(batch)

    def discard(self) -> None:
        self._pending.clear()

    def for_question(self, question_id: str) -> "ReasoningRecorder":
        return ReasoningRecorder(self.agent, self._sink, question_id=question_id)


@dataclass
class StageContext:
    client: GenerationClient
    recorder: ReasoningRecorder
    settings: PipelineSettings = field(default_factory=PipelineSettings)

    def for_question(self, question_id: str) -> "StageContext":
        return replace(self, recorder=self.recorder.for_question(question_id))
