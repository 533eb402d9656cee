"""Complaint endpoints."""

from . import complaints

__all__ = ["complaints"]
