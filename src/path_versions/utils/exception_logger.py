"""Centralized exception logger for path-versions.

Records fatal history errors and failing git commands with full debugging
context (timestamp, thread, stack trace, command context) to a JSON-lines
style log file, so a failed run over a large repository can be diagnosed
after the fact.
"""

import json
import os
import threading
import traceback
from datetime import datetime
from pathlib import Path
from typing import Optional, Dict, Any


class ExceptionLogger:
    """Centralized exception logging facility.

    Only active once ``initialize`` has been called; until then
    ``get_instance`` returns None and callers skip logging.
    """

    _instance: Optional["ExceptionLogger"] = None
    log_file_path: Optional[Path] = None

    def __init__(self, log_file_path: Path):
        self.log_file_path = log_file_path

    @classmethod
    def initialize(cls, log_dir: Path) -> "ExceptionLogger":
        """Initialize the global exception logger (idempotent singleton).

        WARNING: This is a singleton. If already initialized, returns the existing
        instance rather than creating a new one. Tests should reset
        cls._instance = None if they need fresh instances.

        Args:
            log_dir: Directory that receives the error log file

        Returns:
            Initialized ExceptionLogger instance (singleton)
        """
        if cls._instance is not None:
            return cls._instance

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        pid = os.getpid()

        log_dir.mkdir(parents=True, exist_ok=True)
        log_file_path = log_dir / f"error_{timestamp}_{pid}.log"

        instance = cls(log_file_path)
        cls._instance = instance

        log_file_path.touch()

        return instance

    @classmethod
    def get_instance(cls) -> Optional["ExceptionLogger"]:
        """Get the current exception logger instance, or None."""
        return cls._instance

    def log_exception(
        self,
        exception: Exception,
        thread_name: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Log an exception with full context.

        Args:
            exception: The exception to log
            thread_name: Name of the thread where exception occurred (optional)
            context: Additional context data to include in log (optional)
        """
        if not self.log_file_path:
            return

        log_entry = {
            "timestamp": datetime.now().isoformat(),
            "thread": thread_name or threading.current_thread().name,
            "exception_type": type(exception).__name__,
            "exception_message": str(exception),
            "stack_trace": traceback.format_exc(),
            "context": context or {},
        }

        with open(self.log_file_path, "a") as f:
            f.write(json.dumps(log_entry, indent=2))
            f.write("\n---\n")
