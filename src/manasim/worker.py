"""
Background simulation worker.

The worker owns a daemon thread and talks to its caller only through JSON
messages of four kinds:

    RUN       caller -> worker   deck_id, deck, config
    PROGRESS  worker -> caller   deck_id, completed, total
    RESULT    worker -> caller   deck_id, results
    ERROR     worker -> caller   deck_id, error

Name sets in the config travel as lists and are turned back into sets on
the worker side.
"""

import dataclasses
import json
import logging
import queue
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Union

from .deck import ParsedDeck
from .errors import BoundaryError, ManasimError
from .simulation import ProgressCallback, monte_carlo
from .types import SET_FIELDS, SimulationConfig, SimulationResults

logger = logging.getLogger(__name__)


class MessageKind(Enum):
    RUN = "RUN"
    PROGRESS = "PROGRESS"
    RESULT = "RESULT"
    ERROR = "ERROR"


@dataclass
class WorkerMessage:
    kind: MessageKind
    deck_id: str
    payload: Dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> str:
        try:
            return json.dumps(
                {"type": self.kind.value, "deck_id": self.deck_id, **self.payload}
            )
        except (TypeError, ValueError) as e:
            raise BoundaryError(f"Cannot serialize {self.kind.value} message: {e}") from e

    @classmethod
    def from_json(cls, raw: str) -> "WorkerMessage":
        try:
            data = json.loads(raw)
            kind = MessageKind(data.pop("type"))
            deck_id = str(data.pop("deck_id"))
        except (TypeError, ValueError, KeyError) as e:
            raise BoundaryError(f"Malformed worker message: {e}") from e
        return cls(kind, deck_id, data)


def serialize_config(config: SimulationConfig) -> Dict[str, Any]:
    """JSON-safe dict of ``config``; name sets become sorted lists."""
    data = dataclasses.asdict(config)
    for name in SET_FIELDS:
        data[name] = sorted(data[name])
    try:
        json.dumps(data)
    except (TypeError, ValueError) as e:
        raise BoundaryError(f"Config is not serializable: {e}") from e
    return data


def deserialize_config(data: Mapping[str, Any]) -> SimulationConfig:
    return SimulationConfig.from_dict(data)


def serialize_deck(deck: Union[ParsedDeck, Mapping[str, Any]]) -> Dict[str, Any]:
    if isinstance(deck, ParsedDeck):
        return deck.to_dict()
    return dict(deck)


WorkerListener = Callable[[WorkerMessage], None]


class SimulationWorker:
    """
    Runs simulations off the calling thread.

    Messages produced by the worker are put on ``outbox`` and, if given,
    passed to ``listener`` (called from the worker thread). There is no
    cancellation inside a run; ``stop`` only takes effect between runs.
    """

    def __init__(self, listener: Optional[WorkerListener] = None):
        self.inbox: "queue.Queue[Optional[str]]" = queue.Queue()
        self.outbox: "queue.Queue[WorkerMessage]" = queue.Queue()
        self._listener = listener
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            logger.warning("Worker already running")
            return
        self._thread = threading.Thread(target=self._loop, daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        if not self.running:
            return
        self.inbox.put(None)
        self._thread.join(timeout)

    def submit(
        self,
        deck_id: str,
        deck: Union[ParsedDeck, Mapping[str, Any]],
        config: SimulationConfig,
    ) -> None:
        """Queue a RUN message. Raises BoundaryError if the input cannot be serialized."""
        message = WorkerMessage(
            MessageKind.RUN,
            deck_id,
            {"deck": serialize_deck(deck), "config": serialize_config(config)},
        )
        self.inbox.put(message.to_json())

    def wait_for(self, deck_id: str, timeout: Optional[float] = None) -> WorkerMessage:
        """Block until the RESULT or ERROR message for ``deck_id`` arrives."""
        while True:
            message = self.outbox.get(timeout=timeout)
            if message.deck_id == deck_id and message.kind in (
                MessageKind.RESULT,
                MessageKind.ERROR,
            ):
                return message

    def _emit(self, message: WorkerMessage) -> None:
        self.outbox.put(message)
        if self._listener is not None:
            self._listener(message)

    def _error(self, deck_id: str, error: Exception) -> None:
        self._emit(
            WorkerMessage(
                MessageKind.ERROR,
                deck_id,
                {"error": str(error), "error_type": type(error).__name__},
            )
        )

    def _loop(self) -> None:
        while True:
            raw = self.inbox.get()
            if raw is None:
                break
            self._handle(raw)

    def _handle(self, raw: str) -> None:
        deck_id = ""
        try:
            request = WorkerMessage.from_json(raw)
            deck_id = request.deck_id
            if request.kind is not MessageKind.RUN:
                raise BoundaryError(f"Unexpected message kind {request.kind.value}")

            config = deserialize_config(request.payload.get("config") or {})

            def progress(completed: int, total: int) -> None:
                self._emit(
                    WorkerMessage(
                        MessageKind.PROGRESS,
                        deck_id,
                        {"completed": completed, "total": total},
                    )
                )

            results = monte_carlo(request.payload.get("deck") or {}, config, progress)
            message = WorkerMessage(
                MessageKind.RESULT, deck_id, {"results": results.to_dict()}
            )
            message.to_json()
            self._emit(message)
        except ManasimError as e:
            logger.error(f"Simulation {deck_id or '?'} failed: {e}")
            self._error(deck_id, e)
        except Exception as e:
            logger.error(f"Unexpected worker error for {deck_id or '?'}: {e}", exc_info=True)
            self._error(deck_id, e)


def run_comparison(
    deck_a: Union[ParsedDeck, Mapping[str, Any]],
    deck_b: Union[ParsedDeck, Mapping[str, Any]],
    config: SimulationConfig,
    progress: Optional[ProgressCallback] = None,
) -> Tuple[SimulationResults, SimulationResults]:
    """
    Simulate two decks one after the other with the same config.

    Progress is reported over both runs: the first deck covers the first
    half of ``2 * iterations``, the second deck the second half.
    """

    def first_half(completed: int, total: int) -> None:
        if progress is not None:
            progress(completed, 2 * total)

    def second_half(completed: int, total: int) -> None:
        if progress is not None:
            progress(total + completed, 2 * total)

    results_a = monte_carlo(deck_a, config, first_half)
    results_b = monte_carlo(deck_b, config, second_half)
    return results_a, results_b
