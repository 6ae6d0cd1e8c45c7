# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Output formatting for CLI commands."""

from __future__ import annotations

import json
import sys
from typing import Any


def output_result(data: Any) -> None:
    """Pretty-print a result as JSON on stdout."""
    print(json.dumps(data, indent=2, default=str))


def output_error(error: dict[str, Any] | str) -> None:
    """Print an error to stderr; structured errors are printed as JSON."""
    if isinstance(error, dict):
        print(json.dumps(error, indent=2, default=str), file=sys.stderr)
    else:
        print(f"Error: {error}", file=sys.stderr)
