"""
Receipt scanning: text recognition dispatch plus parsing.

The text-recognition engine is an external collaborator behind the
TextRecognizer interface. Recognition runs off the caller's event loop
(blocking engines are pushed to a worker thread) and is retried a few times
before the scan degrades to an empty ParsedReceipt.

Scans started with ReceiptScanner.start() are cancellable. Once a handle is
cancelled its result is discarded and its callback never fires, so a screen
that was closed mid-scan never receives stale data.
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, Optional

import structlog
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from finanz.audit import AuditLogger
from finanz.config import ReceiptSettings, get_settings
from finanz.models.audit import AuditEventBuilder
from finanz.models.receipt import ParsedReceipt
from finanz.receipts.parser import ReceiptParser


class RecognitionError(Exception):
    """The text-recognition engine could not read the image."""
    pass


class TextRecognizer(ABC):
    """Converts a raster image into ordered lines of text."""

    @abstractmethod
    async def recognize(self, image: bytes) -> list[str]:
        """
        Recognize the text on an image.

        Returns:
            Lines in reading order (top of the receipt first)

        Raises:
            RecognitionError: If recognition fails
        """
        pass


class CallableRecognizer(TextRecognizer):
    """
    Adapter for a blocking OCR function.

    The function runs in a worker thread so the event loop stays responsive.
    Any exception it raises is reported as a RecognitionError.
    """

    def __init__(self, func: Callable[[bytes], list[str]]):
        self._func = func

    async def recognize(self, image: bytes) -> list[str]:
        try:
            lines = await asyncio.to_thread(self._func, image)
        except RecognitionError:
            raise
        except Exception as e:
            raise RecognitionError(f"Text recognition failed: {e}") from e
        return [str(line) for line in lines or []]


ResultCallback = Callable[[ParsedReceipt], None]


class ScanHandle:
    """
    A scan in flight.

    cancel() discards the result. result() returns None for a cancelled
    scan instead of raising CancelledError. An unexpected error is audited
    and re-raised by result().
    """

    def __init__(
        self,
        task: "asyncio.Task[ParsedReceipt]",
        on_result: Optional[ResultCallback],
        audit_logger: AuditLogger,
    ):
        self._task = task
        self._on_result = on_result
        self._audit_logger = audit_logger
        self._cancelled = False
        task.add_done_callback(self._deliver)

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def done(self) -> bool:
        return self._task.done()

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self._task.cancel()
        self._audit_logger.log(AuditEventBuilder.receipt_scan_discarded())

    def _deliver(self, task: "asyncio.Task[ParsedReceipt]") -> None:
        # Runs on the event loop that owns the task
        if self._cancelled or task.cancelled():
            return
        error = task.exception()
        if error is not None:
            # Still raised to whoever awaits result()
            self._audit_logger.log(AuditEventBuilder.receipt_scan_crashed(
                str(error), type(error).__name__,
            ))
            return
        if self._on_result is not None:
            self._on_result(task.result())

    async def result(self) -> Optional[ParsedReceipt]:
        try:
            parsed = await self._task
        except asyncio.CancelledError:
            if self._cancelled:
                return None
            raise
        return None if self._cancelled else parsed


class ReceiptScanner:
    """
    Runs text recognition on an image and parses the result.

    Usage:
        scanner = ReceiptScanner(recognizer)
        handle = scanner.start(image_bytes, on_result=screen.prefill)
        ...
        handle.cancel()   # screen dismissed
    """

    def __init__(
        self,
        recognizer: TextRecognizer,
        parser: Optional[ReceiptParser] = None,
        settings: Optional[ReceiptSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
        retry_wait: Optional[Callable] = None,
    ):
        self._recognizer = recognizer
        self._settings = settings or get_settings().receipt
        self._parser = parser or ReceiptParser(settings=self._settings)
        self._audit_logger = audit_logger or AuditLogger()
        self._retry_wait = retry_wait or wait_exponential(multiplier=0.5, min=0.5, max=4)
        self._logger = structlog.get_logger(__name__)

    async def _recognize_with_retry(self, image: bytes) -> list[str]:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._settings.ocr_attempts),
            wait=self._retry_wait,
            retry=retry_if_exception_type(RecognitionError),
        ):
            with attempt:
                return await self._recognizer.recognize(image)
        return []

    async def scan(
        self,
        image: bytes,
        now: Optional[datetime] = None,
    ) -> ParsedReceipt:
        """
        Recognize and parse a receipt image.

        Recognition failures never propagate: after the configured attempts
        an empty ParsedReceipt is returned.
        """
        try:
            lines = await self._recognize_with_retry(image)
        except RetryError as e:
            error = e.last_attempt.exception()
            self._audit_logger.log(AuditEventBuilder.receipt_scan_failed(
                error_message=str(error),
                attempts=self._settings.ocr_attempts,
            ))
            return ParsedReceipt()

        parsed = self._parser.parse(lines, now=now)
        found = [
            name for name in ("amount", "date", "merchant", "vat_rate", "suggested_category")
            if getattr(parsed, name) is not None
        ]
        self._audit_logger.log(AuditEventBuilder.receipt_scanned(
            found_fields=found,
            line_count=len(lines),
        ))
        return parsed

    def start(
        self,
        image: bytes,
        on_result: Optional[ResultCallback] = None,
        now: Optional[datetime] = None,
    ) -> ScanHandle:
        """
        Schedule a scan on the running event loop.

        `on_result` is called on the loop with the ParsedReceipt unless the
        handle is cancelled first.
        """
        self._logger.debug("receipt_scan_started", image_bytes=len(image))
        task = asyncio.get_running_loop().create_task(self.scan(image, now=now))
        return ScanHandle(task, on_result, self._audit_logger)
