"""Exception hierarchy shared across the tracker, store and gateway."""


class StalkerError(Exception):
    """Base class for all Dota Stalker errors."""


class PersistenceError(StalkerError):
    """The save file could not be written."""


class ChannelNotBoundError(StalkerError):
    """A track was requested for a channel that was never bound."""

    def __init__(self, channel_id: int):
        super().__init__(f"Channel {channel_id} is not bound")
        self.channel_id = channel_id


class NotificationError(StalkerError):
    """A create or edit call to the notification sink failed for good."""


class MalformedRequestError(StalkerError):
    """An inbound webhook request could not be split or decoded."""
