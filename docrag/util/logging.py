"""
Structured logging for indexing, vector and scheduler operations.
"""

import logging
from typing import Any, Dict, List


class StructuredLogger:
    """Structured logger for document indexing, vector index and heartbeat operations."""

    def __init__(self, name: str = "docrag"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        if status in ("failed", "error"):
            self.logger.error(message)
        elif status in ("skipped", "warning"):
            self.logger.warning(message)
        else:
            self.logger.info(message)

    def log_vector_operation(self, operation: str, record_id: str, details: Dict[str, Any] = None, status: str = "success"):
        """Log a vector operation."""
        log_details = {"record_id": record_id}
        if details:
            log_details.update(details)

        self.log_operation(f"vector.{operation}", status, log_details)

    def log_index_build(self, num_vectors: int, num_clusters: int, iterations: int, elapsed_ms: float):
        """Log a clustering index build."""
        self.log_operation("vector.build_index", "success", {
            "num_vectors": num_vectors,
            "num_clusters": num_clusters,
            "iterations": iterations,
            "elapsed_ms": round(elapsed_ms, 2)
        })

    def log_document_transition(self, document_id: str, from_status: str, to_status: str, details: Dict[str, Any] = None):
        """Log a document status transition."""
        log_details = {
            "document_id": document_id,
            "from": from_status,
            "to": to_status
        }
        if details:
            log_details.update(details)

        status = "failed" if to_status == "error" else "success"
        self.log_operation("document.transition", status, log_details)

    def log_batch(self, found: int, completed: int, failed: int, document_ids: List[str] = None):
        """Log the outcome of one indexing batch."""
        log_details = {
            "found": found,
            "completed": completed,
            "failed": failed
        }
        if document_ids:
            log_details["document_ids"] = document_ids

        self.log_operation("indexer.batch", "success" if failed == 0 else "partial", log_details)

    def log_heartbeat_task(self, task_name: str, start_time: float, end_time: float, status: str = "success", details: Dict[str, Any] = None):
        """Log heartbeat task execution."""
        duration_ms = round((end_time - start_time) * 1000, 2)
        log_details = {"duration_ms": duration_ms}
        if details:
            log_details.update(details)
        elif status == "success":
            log_details["message"] = f"Heartbeat task '{task_name}' completed in {duration_ms}ms"
        elif status == "failed":
            log_details["message"] = f"Heartbeat task '{task_name}' failed after {duration_ms}ms"

        self.log_operation(f"heartbeat.{task_name}", status, log_details)

    def set_level(self, level: int) -> None:
        """Change the level of the underlying logger."""
        self.logger.setLevel(level)

    # Standard logging methods for compatibility
    def info(self, message: str) -> None:
        """Log an info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log an error message."""
        self.logger.error(message)

    def debug(self, message: str) -> None:
        """Log a debug message."""
        self.logger.debug(message)


# Global logger instance
logger = StructuredLogger()
