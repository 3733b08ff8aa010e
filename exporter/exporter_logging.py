"""
Purpose: Logging helpers for the exporter.
Description: One stdout logger shared by every module, plain-text helpers for
progress lines and JSON helpers for run events and end-of-run summaries.
Key Functions: get_logger, log_info, log_warning, log_error, log_event, log_summary

AIDEV-NOTE: Avoid reconfiguring the root logger elsewhere; use this factory.
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any, Dict, List, Optional


def get_logger(name: str = "exporter") -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
        logger.propagate = False
    return logger


def log_info(message: str) -> None:
    get_logger().info(message)


def log_warning(message: str) -> None:
    get_logger().warning(message)


def log_error(message: str) -> None:
    get_logger().error(message)


def _to_json(payload: Dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False, default=str)


def log_event(event: str, *, details: Optional[Dict[str, Any]] = None) -> None:
    get_logger().info(_to_json({
        "type": "event",
        "event": event,
        "details": details or {},
    }))


def log_summary(*, project: str, exported: int, empty: int, failed: int, records: int,
                failures: Optional[List[Dict[str, Any]]] = None) -> None:
    get_logger().info(_to_json({
        "type": "summary",
        "project": project,
        "exported": exported,
        "empty": empty,
        "failed": failed,
        "records": records,
        "failures": failures or [],
    }))
