"""
Structured logging for baking and query operations.
Bake progress, data-quality findings and index builds go through one logger.
"""

import logging
from typing import Any, Dict, List

from ..core.config import debug_enabled


class StructuredLogger:
    """Structured logger for baking, indexing and query operations."""

    def __init__(self, name: str = "motion_matching"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.DEBUG if debug_enabled() else logging.INFO)

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None, level: int = logging.INFO):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        self.logger.log(level, message)

    def log_bake_clip(self, clip_name: str, clip_index: int, pose_count: int, duration_ms: float, length: float = None):
        """Log the samples collected from one clip."""
        details = {
            "clip": clip_name,
            "clip_index": clip_index,
            "pose_count": pose_count,
            "duration_ms": round(duration_ms, 2),
        }
        if length is not None:
            details["sampled_length"] = round(length, 4)

        self.log_operation("bake.clip", "collected", details)

    def log_bake_summary(self, dimension: int, pose_count: int, clip_count: int, status: str = "success", details: Dict[str, Any] = None):
        """Log the outcome of a full bake."""
        log_details = {
            "dimension": dimension,
            "pose_count": pose_count,
            "clip_count": clip_count,
            "value_count": dimension * pose_count,
        }
        if details:
            log_details.update(details)

        level = logging.INFO if status == "success" else logging.WARNING
        self.log_operation("bake.summary", status, log_details, level=level)

    def log_data_quality(self, issue: str, details: Dict[str, Any] = None):
        """Log a data-quality finding. These never abort a bake."""
        log_details = {"issue": issue}
        if details:
            log_details.update(details)

        self.log_operation("bake.data_quality", "skipped", log_details, level=logging.WARNING)

    def log_config_error(self, operation: str, issues: List[str]):
        """Log configuration problems that abort an operation."""
        log_details = {
            "issues": [str(issue)[:100] for issue in issues],
            "issue_count": len(issues)
        }
        self.log_operation(f"{operation}.config", "aborted", log_details, level=logging.ERROR)

    def log_index_build(self, pose_count: int, dimension: int, distance_type: int, start_time: float, end_time: float):
        """Log a spatial index build."""
        duration_ms = round((end_time - start_time) * 1000, 2)
        log_details = {
            "pose_count": pose_count,
            "dimension": dimension,
            "distance_type": distance_type,
            "duration_ms": duration_ms,
        }
        self.log_operation("index.build", "success", log_details)

    def log_query(self, k: int, result_count: int, duration_us: float, filtered: bool):
        """Log a query at debug level; queries run every tick."""
        log_details = {
            "k": k,
            "result_count": result_count,
            "filtered": filtered,
            "duration_us": round(duration_us, 1),
        }
        self.log_operation("query.pose", "success", log_details, level=logging.DEBUG)


# Global logger instance
logger = StructuredLogger()
