"""Attendance sync and statistics engine for a club with offline and online sessions."""

__version__ = "0.1.0"
