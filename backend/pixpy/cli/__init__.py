"""
CLI module for pixpy

Command-line front end for running editing operations against the generation service.
"""

from .main_cli import main as cli_main, create_parser

__all__ = [
    'cli_main',
    'create_parser',
]
