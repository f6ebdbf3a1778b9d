"""
Langfuse tracing for P&L imports.

One trace per import request: a root span named after the upload (or "pasted
text"), a ``parse`` span with row counts and the detected amount column, and a
``classify`` span with confidence and review counts. Tracing is off unless
``LANGFUSE_PUBLIC_KEY`` is set, and a tracing failure never changes an import.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from langfuse import Langfuse
from langfuse.types import TraceContext

from .config import Settings, get_settings
from .models import Confidence, ImportResult, LineItem

logger = logging.getLogger(__name__)


@dataclass
class ImportTrace:
    """Open trace for a single import."""

    trace_context: TraceContext
    root_span: Optional[Any] = None

    def close(self, output: str) -> None:
        if self.root_span is None:
            return
        try:
            self.root_span.update(output=output)
            self.root_span.end()
        except Exception as e:
            logger.warning("Failed to close import trace: %s", e)
        finally:
            self.root_span = None


class ImportTracer:
    """Records import runs in Langfuse when it is configured."""

    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self.client: Optional[Langfuse] = None

        if settings.langfuse_public_key is None:
            return

        try:
            self.client = Langfuse(
                public_key=settings.langfuse_public_key,
                secret_key=settings.langfuse_secret_key,
                host=settings.langfuse_host,
                debug=settings.langfuse_debug,
            )
            logger.info("Langfuse client initialized with host: %s", settings.langfuse_host)
        except Exception as e:
            logger.warning("Failed to initialize Langfuse: %s", e, exc_info=True)
            self.client = None

    def is_enabled(self) -> bool:
        return self.client is not None

    def start(self, label: str, source: str, user_id: Optional[str] = None) -> Optional[ImportTrace]:
        """
        Open a trace for one import.

        Args:
            label: File name, or "pasted text"
            source: "text", "csv" or "workbook"
            user_id: Optional reviewer id

        Returns:
            ImportTrace, or None when tracing is disabled or unavailable
        """
        if self.client is None:
            return None

        try:
            trace_id = self.client.create_trace_id()
            trace_context = TraceContext(trace_id=trace_id, user_id=user_id or "system")
            root_span = self.client.start_span(
                trace_context=trace_context,
                name="import_pnl",
                input=label,
                metadata={"source": source},
            )
        except Exception as e:
            logger.warning("Failed to start import trace: %s", e, exc_info=True)
            return None

        logger.debug("Started import trace %s for %s", trace_id, label)
        return ImportTrace(trace_context=trace_context, root_span=root_span)

    def _span(
        self,
        trace: Optional[ImportTrace],
        name: str,
        output: str,
        metadata: Dict[str, Any],
    ) -> None:
        if trace is None or self.client is None:
            return
        try:
            span = self.client.start_span(
                trace_context=trace.trace_context,
                name=name,
                metadata=metadata,
            )
            span.update(output=output)
            span.end()
        except Exception as e:
            logger.warning("Failed to record %s span: %s", name, e, exc_info=True)

    def record_parse(self, trace: Optional[ImportTrace], result: ImportResult) -> None:
        self._span(
            trace,
            "parse",
            output=f"{len(result.items)} accounts",
            metadata={
                "excluded": [item.account_name for item in result.excluded],
                "duplicates": len(result.duplicates),
                "header_row_index": result.header_row_index,
                "amount_column": result.amount_column.description if result.amount_column else None,
                "month_count_detected": result.month_count_detected,
            },
        )

    def record_classification(self, trace: Optional[ImportTrace], items: List[LineItem]) -> None:
        low = [item.account_name for item in items if item.confidence == Confidence.LOW]
        flagged = [item.account_name for item in items if item.needs_review]
        self._span(
            trace,
            "classify",
            output=f"{len(low)} low confidence, {len(flagged)} flagged for review",
            metadata={"low_confidence": low, "needs_review": flagged},
        )

    def finish(self, trace: Optional[ImportTrace], outcome: str) -> None:
        """Close the trace and flush queued events."""
        if trace is None:
            return
        trace.close(outcome)
        try:
            if self.client is not None:
                self.client.flush()
        except Exception as e:
            logger.warning("Failed to flush import trace: %s", e, exc_info=True)


_tracer: Optional[ImportTracer] = None


def get_tracer() -> ImportTracer:
    """Get or create the process-wide import tracer."""
    global _tracer
    if _tracer is None:
        _tracer = ImportTracer()
    return _tracer


def initialize_tracing() -> None:
    """Create the tracer at app startup so configuration problems show up early."""
    if get_tracer().is_enabled():
        logger.info("Langfuse tracing enabled")
    else:
        logger.info("Langfuse tracing disabled (LANGFUSE_PUBLIC_KEY not set)")
