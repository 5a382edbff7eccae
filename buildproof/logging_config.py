"""
Logging configuration for buildproof.

Provides structured JSON logging for attestation audit trails and debugging.
Log output goes to stderr; stdout is reserved for the operator report the
CLIs print.
"""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Optional

# Context variable for per-invocation run ID tracking
run_id_var: ContextVar[str] = ContextVar('run_id', default='')


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs one JSON object per record, suitable for CI log collectors.
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

        run_id = run_id_var.get()
        if run_id:
            log_data["run_id"] = run_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, 'extra_fields'):
            log_data.update(record.extra_fields)

        return json.dumps(log_data)


class AuditLogger:
    """
    Specialized logger for attestation events.

    Records proofs produced, each verifier stage outcome and the final
    verdict, so a CI log shows exactly what was attested and checked.
    """

    def __init__(self, name: str = "buildproof.audit"):
        self._logger = logging.getLogger(name)

    def _log(self, level: int, event_type: str, **kwargs) -> None:
        extra = {
            "event_type": event_type,
            "run_id": run_id_var.get(),
            **kwargs
        }

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

    def proof_signed(
        self,
        out_path: str,
        commit: str,
        artifact_tar_hash: str,
        public_key: str
    ) -> None:
        """Log a freshly written proof."""
        self._log(
            logging.INFO,
            "PROOF_SIGNED",
            out_path=out_path,
            commit=commit,
            artifact_tar_hash=artifact_tar_hash,
            public_key=public_key,
            message=f"Proof written to {out_path}"
        )

    def verification_stage(
        self,
        stage: str,
        status: str,
        detail: str = ""
    ) -> None:
        """Log a single verifier stage outcome."""
        level = {
            "passed": logging.INFO,
            "skipped": logging.INFO,
            "warning": logging.WARNING,
            "failed": logging.ERROR,
        }.get(status, logging.INFO)
        self._log(
            level,
            "VERIFICATION_STAGE",
            stage=stage,
            status=status,
            detail=detail,
            message=f"{stage} {status}"
        )

    def verification_result(
        self,
        outcome: str,
        failed_stage: Optional[str] = None,
        reason: Optional[str] = None,
        warnings: Optional[list] = None
    ) -> None:
        """Log the final verifier verdict."""
        level = logging.INFO if outcome == "ACCEPTED" else logging.WARNING
        self._log(
            level,
            "VERIFICATION_RESULT",
            outcome=outcome,
            failed_stage=failed_stage,
            reason=reason,
            warnings=warnings or [],
            message=f"Verification {outcome}"
        )

    def security_event(
        self,
        event: str,
        severity: str = "medium",
        **details
    ) -> None:
        """Log a security-relevant event."""
        level = {
            "low": logging.INFO,
            "medium": logging.WARNING,
            "high": logging.ERROR,
            "critical": logging.CRITICAL
        }.get(severity, logging.WARNING)

        self._log(
            level,
            "SECURITY_EVENT",
            security_event=event,
            severity=severity,
            **details,
            message=f"Security event: {event}"
        )


def configure_logging(
    level: str = "WARNING",
    json_format: bool = False
) -> None:
    """
    Configure logging for a CLI invocation.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON formatting
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.WARNING))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if json_format:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)


def set_run_id(run_id: Optional[str] = None) -> str:
    """
    Set the run ID for the current context.

    Args:
        run_id: Run ID to set, or None to generate one

    Returns:
        The run ID that was set
    """
    if run_id is None:
        run_id = str(uuid.uuid4())
    run_id_var.set(run_id)
    return run_id


# Global audit logger instance
audit_log = AuditLogger()
