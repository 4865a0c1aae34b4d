#!/usr/bin/env python3
"""
Logging configuration for PortProbe
Console output, a rotating application log and a scan audit trail
"""

import logging
import logging.handlers
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional
import json

AUDIT_LOGGER_NAME = "portprobe.audit"

class EnhancedLogger:
    """Root logger setup plus structured scan audit events"""

    def __init__(self, app_name="PortProbe", logs_dir="logs", verbose=False, quiet=False, log_to_file=True):
        self.app_name = app_name
        self.logs_dir = Path(logs_dir)
        self.verbose = verbose
        self.quiet = quiet
        self.log_to_file = log_to_file
        self.setup_logging()

    def setup_logging(self):
        """Setup logging configuration"""

        root_logger = logging.getLogger()
        root_logger.setLevel(logging.DEBUG if self.verbose else logging.INFO)

        # Clear existing handlers
        root_logger.handlers.clear()

        # Console handler; stdout belongs to the report, so log to stderr
        console_handler = logging.StreamHandler()
        if self.quiet:
            console_handler.setLevel(logging.ERROR)
        elif self.verbose:
            console_handler.setLevel(logging.DEBUG)
        else:
            console_handler.setLevel(logging.WARNING)
        console_formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )
        console_handler.setFormatter(console_formatter)
        root_logger.addHandler(console_handler)

        audit_logger = logging.getLogger(AUDIT_LOGGER_NAME)
        audit_logger.handlers.clear()
        audit_logger.propagate = False
        audit_logger.setLevel(logging.INFO)

        if self.log_to_file:
            self.logs_dir.mkdir(parents=True, exist_ok=True)

            # File handler for general logs
            file_handler = logging.handlers.RotatingFileHandler(
                self.logs_dir / "portprobe.log",
                maxBytes=10*1024*1024,  # 10MB
                backupCount=5,
                encoding='utf-8'
            )
            file_handler.setLevel(logging.DEBUG if self.verbose else logging.INFO)
            file_formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
            )
            file_handler.setFormatter(file_formatter)
            root_logger.addHandler(file_handler)

            # Audit log handler
            audit_handler = logging.handlers.RotatingFileHandler(
                self.logs_dir / "scan_audit.log",
                maxBytes=10*1024*1024,  # 10MB
                backupCount=20,
                encoding='utf-8'
            )
            audit_handler.setLevel(logging.INFO)
            audit_handler.setFormatter(logging.Formatter('%(asctime)s - AUDIT - %(message)s'))
            audit_logger.addHandler(audit_handler)
        else:
            audit_logger.addHandler(logging.NullHandler())

        # Set specific logger levels
        logging.getLogger('urllib3').setLevel(logging.WARNING)
        logging.getLogger('httpx').setLevel(logging.WARNING)
        logging.getLogger('httpcore').setLevel(logging.WARNING)
        logging.getLogger('asyncio').setLevel(logging.WARNING)

        self.logger = logging.getLogger(self.app_name)
        self.logger.debug(f"Logging initialized for {self.app_name}")

    def log_scan_event(self, event_type: str, target: str, details: Optional[Dict[str, Any]] = None):
        """Write one JSON audit record for a scan lifecycle event"""
        audit_data = {
            'timestamp': datetime.now().isoformat(),
            'event_type': event_type,
            'target': target,
            'details': details or {},
        }
        logging.getLogger(AUDIT_LOGGER_NAME).info(json.dumps(audit_data, default=str))

def init_enhanced_logging(app_name="PortProbe", **kwargs):
    """Initialize logging for the whole process"""
    return EnhancedLogger(app_name, **kwargs)
