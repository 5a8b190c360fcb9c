"""
Categorized message output and operation bracketing.

The MessageReporter writes info/warning/error lines and brackets named
operations (imports, leak checks, compilations) with start/finish messages.
Every line is mirrored to the module logger at the matching level.
"""

import logging
import threading
from typing import Dict, List, Optional, Tuple

from ..exceptions import OperationPairingError
from ..models.reporting import MessageStatus, OperationSpan, OperationType
from .service_messages import ServiceMessageWriter

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    MessageStatus.NORMAL: logging.INFO,
    MessageStatus.WARNING: logging.WARNING,
    MessageStatus.ERROR: logging.ERROR,
}


class MessageReporter:
    """
    Writes messages and operation brackets to the service message channel.

    Operations pair 1:1 per ``(type, label)``. Starting an operation that is
    already open, or finishing one that is not open, raises
    OperationPairingError when ``strict`` is set and is logged and ignored
    otherwise.
    """

    def __init__(self, writer: Optional[ServiceMessageWriter] = None, strict: bool = False):
        self.writer = writer or ServiceMessageWriter()
        self.strict = strict
        self._open: Dict[Tuple[OperationType, str], OperationSpan] = {}
        self._finished: List[OperationSpan] = []
        self._lock = threading.Lock()

    # --- Messages ---

    def message(self, text: str, status: MessageStatus = MessageStatus.NORMAL) -> None:
        logger.log(_LOG_LEVELS[status], text)
        self.writer.write("message", text=text, status=status.value)

    def warning(self, text: str) -> None:
        self.message(text, MessageStatus.WARNING)

    def error(self, text: str) -> None:
        self.message(text, MessageStatus.ERROR)

    def progress(self, text: str) -> None:
        logger.info(text)
        self.writer.write("progressMessage", text)

    # --- Operations ---

    def start_operation(self, op_type: OperationType, label: str) -> Optional[OperationSpan]:
        key = (op_type, label)
        with self._lock:
            if key in self._open:
                self._pairing_mismatch(f"Operation '{label}' ({op_type.value}) is already started")
                return None
            span = OperationSpan(type=op_type, label=label)
            self._open[key] = span

        if op_type is OperationType.TEST:
            self.writer.write("testStarted", name=label)
        else:
            self.writer.write("compilationStarted", compiler=label)
        logger.info(f"Started {op_type.value} '{label}'")
        return span

    def finish_operation(
        self,
        op_type: OperationType,
        label: str,
        failure_message: Optional[str] = None,
        duration_ms: Optional[int] = None,
    ) -> Optional[OperationSpan]:
        key = (op_type, label)
        with self._lock:
            span = self._open.pop(key, None)
            if span is None:
                self._pairing_mismatch(f"Operation '{label}' ({op_type.value}) was not started")
                return None
            span.finish(failure_message=failure_message, duration_ms=duration_ms)
            self._finished.append(span)

        if op_type is OperationType.TEST:
            if failure_message:
                self.writer.write("testFailed", name=label, message=failure_message)
            self.writer.write("testFinished", name=label, duration=span.duration_ms)
        else:
            if failure_message:
                self.error(failure_message)
                self.writer.write("buildProblem", description=failure_message)
            self.writer.write("compilationFinished", compiler=label)

        if failure_message:
            logger.error(f"Finished {op_type.value} '{label}' with failure: {failure_message}")
        else:
            logger.info(f"Finished {op_type.value} '{label}' in {span.duration_ms} ms")
        return span

    def is_open(self, op_type: OperationType, label: str) -> bool:
        with self._lock:
            return (op_type, label) in self._open

    @property
    def finished_operations(self) -> Tuple[OperationSpan, ...]:
        with self._lock:
            return tuple(self._finished)

    def _pairing_mismatch(self, description: str) -> None:
        if self.strict:
            raise OperationPairingError(description)
        logger.warning(description)
