"""
widget-fuzz — persistence boundary

File: src/widget_fuzz/persistence/__init__.py

Purpose
- The event-log mutation sink contract and its in-memory implementation.
"""

from widget_fuzz.persistence.event_log import EventLog, InMemoryEventLog, LogUpdater

__all__ = ["EventLog", "InMemoryEventLog", "LogUpdater"]
