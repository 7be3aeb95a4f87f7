"""
Background nesting worker

Runs a NestingEngine off the caller's thread. The worker takes one input
(fabric width + segments) and posts to a queue a stream of ``log``
messages followed by exactly one ``result`` or ``error`` message.
"""

import asyncio
import logging
import queue
import threading
from typing import Iterator, Optional, Sequence

from .config import NestingConfig
from .logs import LogCollector
from .models import LogEntry, Segment, WorkerMessage
from .nesting import NestingEngine, validate_inputs

logger = logging.getLogger(__name__)


class NestingWorker:
    """One-shot worker; create a new instance per run"""

    def __init__(self, fabric_width: float, segments: Sequence[Segment],
                 config: Optional[NestingConfig] = None, enabled_names=None,
                 large_only: bool = False):
        self.fabric_width = fabric_width
        self.segments = list(segments or [])
        self.config = config
        self.enabled_names = enabled_names
        self.large_only = large_only
        self.outbox: "queue.Queue[WorkerMessage]" = queue.Queue()
        self.collector = LogCollector(forward=self._post_log)
        self._thread: Optional[threading.Thread] = None

    def _post_log(self, entry: LogEntry) -> None:
        self.outbox.put(WorkerMessage(type="log", data=entry.model_dump()))

    def _run(self) -> None:
        try:
            message = validate_inputs(self.fabric_width, self.segments)
            if message:
                self.outbox.put(WorkerMessage(type="error", data=message))
                return
            engine = NestingEngine(
                self.fabric_width,
                self.segments,
                log=self.collector,
                config=self.config,
                enabled_names=self.enabled_names,
                large_only=self.large_only,
            )
            result = asyncio.run(engine.perform_nesting())
            self.outbox.put(WorkerMessage(type="result", data=result.model_dump()))
        except Exception as e:
            logger.exception("Nesting worker failed")
            self.outbox.put(WorkerMessage(type="error", data=str(e) or "Unknown error"))

    def start(self) -> "NestingWorker":
        if self._thread is not None:
            raise RuntimeError("Worker already started")
        self._thread = threading.Thread(target=self._run, name="nesting-worker", daemon=True)
        self._thread.start()
        return self

    def messages(self, timeout: Optional[float] = None) -> Iterator[WorkerMessage]:
        """Yield messages until the terminal result/error message"""
        if self._thread is None:
            self.start()
        while True:
            msg = self.outbox.get(timeout=timeout)
            yield msg
            if msg.type != "log":
                return

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)
