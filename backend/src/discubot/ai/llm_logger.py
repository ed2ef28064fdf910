"""
LLM interaction logging.

Records analyzer requests, responses and errors to a dedicated log file
when LLM logging is enabled in configuration.
"""

import json
import logging
import logging.handlers
import time
from datetime import datetime, timezone
from typing import Optional

from discubot.ai.providers.base import LLMResponse
from discubot.config import settings
from discubot.models.parsed import DiscussionThread

logger = logging.getLogger(__name__)


def _preview(text: str, limit: int) -> str:
    return text[:limit] + "..." if len(text) > limit else text


class LLMLogger:
    """
    Logger for language model calls made while analyzing threads.

    Writes one JSON line per event to llm/requests.log under the log
    directory. Does nothing unless llm_logging_enabled is set.
    """

    def __init__(self, enabled: Optional[bool] = None):
        self.llm_logger = logging.getLogger("discubot.llm")
        self.enabled = settings.llm_logging_enabled if enabled is None else enabled

        if self.enabled and settings.log_file_enabled:
            self._setup_file_handler()

    def _setup_file_handler(self) -> None:
        llm_dir = settings.log_directory / "llm"
        llm_dir.mkdir(parents=True, exist_ok=True)

        handler = logging.handlers.RotatingFileHandler(
            llm_dir / "requests.log",
            maxBytes=settings.log_max_bytes,
            backupCount=settings.log_backup_count,
            encoding="utf-8",
        )
        handler.setFormatter(
            logging.Formatter(
                fmt="[%(asctime)s] [%(levelname)s] %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )

        self.llm_logger.addHandler(handler)
        self.llm_logger.setLevel(logging.INFO)
        self.llm_logger.propagate = False

    def log_request(
        self,
        kind: str,
        thread: DiscussionThread,
        model: str,
        prompt: str,
        max_tokens: int,
    ) -> str:
        """
        Log a request about to be sent.

        Args:
            kind: "summary", "tasks" or "reply"
            thread: Thread being analyzed
            model: Model name
            prompt: Full user prompt
            max_tokens: Maximum tokens requested

        Returns:
            str: Request ID for correlating with the response
        """
        if not self.enabled:
            return ""

        request_id = f"{kind}_{thread.id}_{int(time.time() * 1000)}"
        log_entry = {
            "type": "request",
            "kind": kind,
            "request_id": request_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "model": model,
            "thread_id": thread.id,
            "message_count": len(thread.messages),
            "max_tokens": max_tokens,
            "prompt_preview": _preview(prompt, 500),
            "prompt_length": len(prompt),
        }

        self.llm_logger.info(f"REQUEST: {json.dumps(log_entry)}")
        return request_id

    def log_response(self, request_id: str, response: LLMResponse) -> None:
        if not self.enabled:
            return

        log_entry = {
            "type": "response",
            "request_id": request_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "model": response.model,
            "finish_reason": response.finish_reason,
            "duration_ms": round(response.duration_ms, 2),
            "tokens": {
                "prompt": response.prompt_tokens,
                "completion": response.completion_tokens,
                "total": response.total_tokens,
            },
            "content_preview": _preview(response.content, 200),
        }

        self.llm_logger.info(f"RESPONSE: {json.dumps(log_entry)}")

    def log_error(
        self,
        request_id: str,
        error: Exception,
        thread: Optional[DiscussionThread] = None,
    ) -> None:
        if not self.enabled:
            return

        log_entry = {
            "type": "error",
            "request_id": request_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "error_type": type(error).__name__,
            "error_message": str(error),
        }
        if thread:
            log_entry["thread_id"] = thread.id

        self.llm_logger.error(f"ERROR: {json.dumps(log_entry)}")

    def log_cache_hit(self, thread: DiscussionThread) -> None:
        """Log a cache hit (no API call made)."""
        if not self.enabled:
            return

        log_entry = {
            "type": "cache_hit",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "thread_id": thread.id,
            "message_count": len(thread.messages),
        }

        self.llm_logger.info(f"CACHE_HIT: {json.dumps(log_entry)}")


# Global LLM logger instance
llm_logger = LLMLogger()
