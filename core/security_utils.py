#!/usr/bin/env python3
"""
Security utilities for PortProbe
Screens user supplied values before they reach sockets or the nmap command line
"""

import re
import logging
from typing import List

logger = logging.getLogger(__name__)

class SecurityUtils:
    """Input screening helpers"""

    MAX_HOST_LENGTH = 253

    # Dangerous patterns to block
    DANGEROUS_PATTERNS = [
        r'[;&|`$()<>]',  # Shell operators
        r'\s',            # Whitespace
        r'\.\./',         # Path traversal
        r'^-',            # Option injection
    ]

    SCRIPT_NAME_PATTERN = re.compile(r'^[a-z0-9][a-z0-9_.-]*$')

    @classmethod
    def contains_dangerous_patterns(cls, value: str) -> bool:
        """Check if value contains dangerous patterns"""
        if not value:
            return False

        for pattern in cls.DANGEROUS_PATTERNS:
            if re.search(pattern, value):
                logger.warning(f"Dangerous pattern detected: {pattern} in value: {value!r}")
                return True

        return False

    @classmethod
    def is_safe_host(cls, host: str) -> bool:
        """Check that a host string is usable as a scan target"""
        if not host or not isinstance(host, str):
            return False

        if len(host) > cls.MAX_HOST_LENGTH:
            return False

        return not cls.contains_dangerous_patterns(host)

    @classmethod
    def is_safe_script_name(cls, script: str) -> bool:
        """NSE script names are lowercase words joined by '-', '_' or '.'"""
        if not script:
            return False
        return bool(cls.SCRIPT_NAME_PATTERN.match(script)) and not cls.contains_dangerous_patterns(script)

    @classmethod
    def split_script_list(cls, scripts: str) -> List[str]:
        """Split a comma-separated script list, dropping empty entries"""
        if not scripts:
            return []
        return [name.strip() for name in scripts.split(',') if name.strip()]
