"""
Logging configuration for beacon-stack.

Structured JSON logging for assembly runs and Beacon invocations.
"""

import json
import logging
import sys
import time
from typing import Any, Dict, List, Optional


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    One JSON object per line, suitable for CloudWatch or any log
    aggregation system.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": time.strftime('%Y-%m-%dT%H:%M:%SZ', time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, 'extra_fields'):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


class AssemblyLogger:
    """
    Event logger for stack assembly and Beacon invocation.

    Each event carries an event_type plus structured fields.
    """

    def __init__(self, name: str = "beacon_stack.events"):
        self._logger = logging.getLogger(name)

    def _log(self, level: int, event_type: str, **kwargs) -> None:
        if not self._logger.isEnabledFor(level):
            return
        extra = {"event_type": event_type, **kwargs}

        record = self._logger.makeRecord(
            self._logger.name,
            level,
            "",
            0,
            f"{event_type}: {kwargs.get('message', '')}",
            (),
            None
        )
        record.extra_fields = extra
        self._logger.handle(record)

    def assembly_request(self, stack_id: str, target: str, functions: List[str]) -> None:
        self._log(
            logging.INFO,
            "ASSEMBLY_REQUEST",
            stack_id=stack_id,
            target=target,
            functions=functions,
            message=f"Assembling {stack_id} for {target}"
        )

    def assembly_succeeded(self, stack_id: str, descriptor_hash: str, bindings: int) -> None:
        self._log(
            logging.INFO,
            "ASSEMBLY_SUCCEEDED",
            stack_id=stack_id,
            descriptor_hash=descriptor_hash,
            bindings=bindings,
            message=f"Assembled {stack_id} with {bindings} binding(s)"
        )

    def assembly_failed(self, stack_id: str, violations: List[Dict[str, Any]]) -> None:
        self._log(
            logging.WARNING,
            "ASSEMBLY_FAILED",
            stack_id=stack_id,
            violations=violations,
            message=f"Assembly of {stack_id} failed with {len(violations)} violation(s)"
        )

    def beacon_invoke(
        self,
        function_name: str,
        reference_name: str,
        start: int,
        found: Optional[bool] = None,
        function_error: Optional[str] = None
    ) -> None:
        level = logging.ERROR if function_error else logging.INFO
        self._log(
            level,
            "BEACON_INVOKE",
            function_name=function_name,
            reference_name=reference_name,
            start=start,
            found=found,
            function_error=function_error,
            message=f"Invoked {function_name} at {reference_name}:{start}"
        )


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: Optional[str] = None
) -> None:
    """
    Configure logging for the command line tool.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON formatting
        log_file: Optional file path for log output
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if json_format:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    # stdout carries the descriptor itself, so logs go to stderr
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


event_log = AssemblyLogger()
