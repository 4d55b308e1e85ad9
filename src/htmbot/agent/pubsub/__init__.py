"""In-process event bus for live chat updates."""

from .channel import ChannelPubSub, Subscription, SubscriptionClosed

__all__ = [
    "ChannelPubSub",
    "Subscription",
    "SubscriptionClosed",
]
