from pixel_relay.models.event import Event
from pixel_relay.models.unique_user import UniqueUser

__all__ = [
    "Event",
    "UniqueUser",
]
