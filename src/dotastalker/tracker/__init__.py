"""
Tracker module.

Owns registrations, channel bindings, tracks and active matches, and decides
when a match notification is created or edited.
"""

from .actor import ActiveMatch, ReconciliationActor
from .requests import AddTrack, BindChannel, RegisterUser, RemoveTrack, TrackerClient
from .sink import ContentField, NotificationContent, NotificationHandle, NotificationSink

__all__ = [
    "ActiveMatch",
    "AddTrack",
    "BindChannel",
    "ContentField",
    "NotificationContent",
    "NotificationHandle",
    "NotificationSink",
    "ReconciliationActor",
    "RegisterUser",
    "RemoveTrack",
    "TrackerClient",
]
