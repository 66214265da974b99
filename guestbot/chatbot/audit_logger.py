"""
Structured audit logging for agent-loop decisions.

Produces JSON log entries via Python's standard logging module under
the ``guestbot.audit`` logger name. Each entry includes a timestamp,
event_type, the chat session id, and event-specific fields.

Usage::

    audit = AuditLogger(session_id="sess_123")
    audit.log_tool_execution(
        agent="guest_handler",
        tool_name="update_rsvp",
        args_summary={"guestId": "g1", "status": "CONFIRMED"},
        success=True,
        duration_ms=42,
    )
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

_audit_logger = logging.getLogger("guestbot.audit")

# Longest argument value kept in an audit entry.
_MAX_ARG_CHARS = 200


class AuditLogger:
    """Structured audit logger for agent loops and tool calls."""

    def __init__(self, session_id: Optional[str] = None) -> None:
        self._default_session_id = session_id

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    def _emit(self, event_type: str, fields: Dict[str, Any]) -> None:
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event_type": event_type,
        }
        entry.update(fields)
        _audit_logger.info(json.dumps(entry, default=str, ensure_ascii=False))

    def _sid(self, session_id: Optional[str] = None) -> str:
        return session_id or self._default_session_id or ""

    @staticmethod
    def summarize_args(arguments: Dict[str, Any]) -> Dict[str, Any]:
        """Truncate long argument values for the log."""
        summary: Dict[str, Any] = {}
        for key, value in (arguments or {}).items():
            if isinstance(value, str) and len(value) > _MAX_ARG_CHARS:
                value = value[:_MAX_ARG_CHARS] + "..."
            summary[key] = value
        return summary

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------

    def log_loop_iteration(
        self,
        agent: str,
        iteration: int,
        status: str,
        tool_calls: List[str],
        session_id: Optional[str] = None,
    ) -> None:
        """Log the outcome of one pass through a tool-calling loop."""
        self._emit("loop_iteration", {
            "session_id": self._sid(session_id),
            "agent": agent,
            "iteration": iteration,
            "status": status,
            "tool_calls": tool_calls,
            "tool_calls_count": len(tool_calls),
        })

    def log_tool_execution(
        self,
        agent: str,
        tool_name: str,
        args_summary: Dict[str, Any],
        success: bool,
        duration_ms: int,
        error: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> None:
        """Log a single tool execution."""
        fields: Dict[str, Any] = {
            "session_id": self._sid(session_id),
            "agent": agent,
            "tool_name": tool_name,
            "args_summary": args_summary,
            "success": success,
            "duration_ms": duration_ms,
        }
        if error is not None:
            fields["error"] = error
        self._emit("tool_execution", fields)

    def log_execution_complete(
        self,
        agent: str,
        stop: str,
        iterations: int,
        failed: bool,
        response_chars: int,
        duration_ms: int,
        session_id: Optional[str] = None,
    ) -> None:
        """Log the end of an agent execution."""
        self._emit("execution_complete", {
            "session_id": self._sid(session_id),
            "agent": agent,
            "stop": stop,
            "iterations": iterations,
            "failed": failed,
            "response_chars": response_chars,
            "duration_ms": duration_ms,
        })

    def log_delegation(
        self,
        event_id: str,
        instruction: str,
        parent_execution_id: Optional[str],
        parent_loop_iteration_id: Optional[str],
        session_id: Optional[str] = None,
    ) -> None:
        """Log a hand-off from the main agent to the guest handler."""
        self._emit("delegation", {
            "session_id": self._sid(session_id),
            "event_id": event_id,
            "instruction_preview": instruction[:_MAX_ARG_CHARS],
            "parent_execution_id": parent_execution_id,
            "parent_loop_iteration_id": parent_loop_iteration_id,
        })
