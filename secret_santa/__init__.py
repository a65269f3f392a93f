"""
Secret Santa group organizer backend: draw engine and notification delivery.
"""

__version__ = "0.1.0"
