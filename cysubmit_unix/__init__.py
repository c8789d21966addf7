"""
cysubmit Unix - Command-line entry points
"""

from .cli import main as submit_main
from .verify_cli import main as verify_main

__all__ = ["submit_main", "verify_main"]
