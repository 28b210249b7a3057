"""Session event publisher for pub/sub notification."""

import logging
from typing import Callable

from pubsub import pub

from ..models.events import SessionEvent

logger = logging.getLogger(__name__)

SESSION_EVENT_TYPES = ("started", "stopped")


def _session_event_spec(event: SessionEvent) -> None:
    """Message data specification shared by the session topics."""


class SessionPublisher:
    """Publishes recording lifecycle events using pubsub.pub.

    An event of type ``started`` goes to ``<prefix>.started`` and so on.
    """

    def __init__(self, topic_prefix: str = "recording"):
        """Initialize session publisher.

        Args:
            topic_prefix: Pub/sub topic prefix for session events
        """
        self.topic_prefix = topic_prefix
        topic_mgr = pub.getDefaultTopicMgr()
        for event_type in SESSION_EVENT_TYPES:
            topic_mgr.getOrCreateTopic(self.topic_for(event_type), _session_event_spec)
        logger.debug(f"SessionPublisher initialized with topic prefix: {topic_prefix}")

    def topic_for(self, event_type: str) -> str:
        return f"{self.topic_prefix}.{event_type}"

    def publish_session_event(self, event: SessionEvent) -> None:
        """Publish a session event to its pub/sub topic."""
        pub.sendMessage(self.topic_for(event.event_type), event=event)
        logger.debug(f"Published session event: {event.event_id}")

    def get_callback(self) -> Callable[[SessionEvent], None]:
        """Get callback function for RecordingController to use."""
        return self.publish_session_event
