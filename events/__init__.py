"""
Event publishing for the forum client
"""

from .event_bus import EventBus, EventTypes, SystemEvent

__all__ = ['EventBus', 'EventTypes', 'SystemEvent']
