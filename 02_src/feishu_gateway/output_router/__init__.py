"""OutputRouter module."""

from .router import OutputRouter, receive_id_type_for

__all__ = ["OutputRouter", "receive_id_type_for"]
