"""
Services module for pixpy backend
Contains the editing service that runs image operations against the generation service
"""

from .editing_service import (
    EditingService,
    RetryOrchestrator,
    get_editing_service,
    reset_editing_service,
)

__all__ = [
    'EditingService',
    'RetryOrchestrator',
    'get_editing_service',
    'reset_editing_service',
]
