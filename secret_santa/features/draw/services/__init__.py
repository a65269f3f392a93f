"""
Service layer for the draw feature.
"""

from .cycle_generator import find_infeasibility, generate_cycle, verify_cycle
from .draw_service import DrawService, validate_budget

__all__ = [
    "DrawService",
    "find_infeasibility",
    "generate_cycle",
    "validate_budget",
    "verify_cycle",
]
