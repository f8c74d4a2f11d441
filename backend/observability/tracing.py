from contextlib import ExitStack, contextmanager
from datetime import datetime
from typing import Any

from core.clients import get_langfuse_client


class _NullGeneration:
    def update(self, **kwargs):
        pass


@contextmanager
def traced_generation(name: str, *, model: str, prompt=None, input_data=None):
    langfuse = get_langfuse_client()
    if not langfuse:
        yield _NullGeneration()
        return

    with ExitStack() as stack:
        try:
            gen = stack.enter_context(
                langfuse.start_as_current_observation(
                    as_type="generation",
                    name=name,
                    model=model,
                    prompt=prompt,
                    input=_safe_serialize(input_data),
                )
            )
        except Exception:
            gen = _NullGeneration()
        yield gen


class PipelineTrace:
    def __init__(
        self,
        pipeline_name: str,
        session_id: str | None = None,
        metadata: dict | None = None,
    ):
        self.pipeline_name = pipeline_name
        self.session_id = session_id or datetime.now().strftime("%Y%m%d_%H%M%S")
        self.metadata = metadata or {}
        self.start_time: datetime | None = None
        self.langfuse = get_langfuse_client()
        self._span = None
        self.nodes_logged: list[dict] = []

    def __enter__(self):
        self.start_time = datetime.now()

        if self.langfuse:
            try:
                self._span = self.langfuse.start_as_current_span(name=self.pipeline_name)
                self._span.__enter__()
                self.langfuse.update_current_trace(
                    session_id=self.session_id,
                    metadata={"started_at": self.start_time.isoformat(), **self.metadata},
                )
            except Exception:
                self._span = None

        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._span:
            try:
                self.langfuse.update_current_span(
                    output={
                        "status": "ERROR" if exc_type or self.failed else "OK",
                        "nodes_completed": len(self.nodes_logged),
                        "nodes": self.nodes_logged,
                    },
                )
                self._span.__exit__(exc_type, exc_val, exc_tb)
            except Exception:
                pass

        if self.langfuse:
            try:
                self.langfuse.flush()
            except Exception:
                pass

    @property
    def failed(self) -> bool:
        return any(not node["success"] for node in self.nodes_logged)

    def log_node(
        self,
        node_name: str,
        input_data: Any,
        output_data: Any,
        duration_ms: float,
        error: str | None = None,
    ):
        self.nodes_logged.append(
            {"node": node_name, "duration_ms": round(duration_ms, 1), "success": error is None}
        )

        if not self.langfuse:
            return

        try:
            with self.langfuse.start_as_current_span(
                name=node_name,
                input=_safe_serialize(input_data),
            ):
                self.langfuse.update_current_span(
                    output=_safe_serialize(output_data),
                    metadata={"duration_ms": round(duration_ms, 1), "error": error},
                )
        except Exception:
            pass


def _safe_serialize(data: Any) -> Any:
    if data is None:
        return None
    try:
        if hasattr(data, "model_dump"):
            return data.model_dump(mode="json")
        if isinstance(data, (dict, list, str, int, float, bool)):
            return data
        return str(data)[:500]
    except Exception:
        return str(data)[:500]
