from .draw_repository import DrawRepository, draw_repository

__all__ = ["DrawRepository", "draw_repository"]
