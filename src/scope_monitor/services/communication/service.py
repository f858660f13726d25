"""Alert publishing over NATS."""

import json
import logging
from typing import Optional

import nats

from ...config.defaults import DEFAULT_CONFIG
from ..events import DetectionEvent

logger = logging.getLogger(__name__)


class AlertPublisher:
    """Publishes detection events to a per-camera NATS subject."""

    def __init__(
        self,
        camera_id: str,
        url: Optional[str] = None,
        subject_root: Optional[str] = None,
        include_image: bool = False
    ):
        nats_config = DEFAULT_CONFIG["nats"]
        self.url = url or nats_config["url"]
        self.subject = f"{subject_root or nats_config['subject_root']}.{camera_id}"
        self.include_image = include_image
        self.nc = None
        self.published = 0

    @property
    def connected(self) -> bool:
        return self.nc is not None and self.nc.is_connected

    async def connect(self) -> None:
        """Connect to the NATS server."""
        self.nc = await nats.connect(self.url)
        logger.info("Connected to NATS at %s, publishing to %s", self.url, self.subject)

    def build_headers(self, event: DetectionEvent) -> dict:
        return {
            "Content-Type": "application/json",
            "Event-Type": "detection" if event.detected else "observation",
            "Urgency": event.urgency,
        }

    async def publish(self, event: DetectionEvent) -> bool:
        """
        Publish one event. Failures are logged and reported as False so a
        broken alert channel never interrupts monitoring.
        """
        if not self.connected:
            logger.debug("NATS not connected, event %s not published", event.event_id)
            return False
        try:
            await self.nc.publish(
                self.subject,
                json.dumps(event.to_payload(include_image=self.include_image)).encode(),
                headers=self.build_headers(event)
            )
        except Exception as e:
            logger.error("Error publishing detection event %s: %s", event.event_id, e)
            return False
        self.published += 1
        return True

    async def close(self) -> None:
        """Drain pending messages and close the connection."""
        if self.nc is None:
            return
        try:
            await self.nc.drain()
        except Exception as e:
            logger.warning("Error draining NATS connection: %s", e)
        finally:
            if not self.nc.is_closed:
                await self.nc.close()
            self.nc = None
        logger.info("NATS connection closed (%d events published)", self.published)
