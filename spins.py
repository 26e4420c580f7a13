import logging
import threading
from collections import namedtuple
from datetime import datetime, timezone

import spin_resolver

logger = logging.getLogger(__name__)

ANONYMOUS_USERNAME = 'Anónimo'
TEST_USERNAME = 'Test User'
TEST_TEXT = 'Test spin'

SPIN_EVENT = 'spin'
SEGMENTS_UPDATED_EVENT = 'segments-updated'

WebhookSpin = namedtuple('WebhookSpin', ['username', 'text', 'sku'])


def _is_blank(value):
    """None, empty string, False, zero and NaN count as missing"""
    if value is None or value == '':
        return True
    if isinstance(value, (bool, int, float)):
        return not value or value != value
    return False


def first_field(payload, *names):
    """Return the first named field holding a non-blank value, as a string"""
    for name in names:
        value = payload.get(name)
        if _is_blank(value):
            continue
        return str(value)
    return None


def parse_webhook_payload(payload):
    """
    Extract username, text and SKU from an automation platform request.
    Generic platforms (IFTTT-style) send ``value1..value3``; named fields are
    accepted as a fallback.
    """
    payload = payload or {}
    return WebhookSpin(
        username=first_field(payload, 'value1', 'username') or ANONYMOUS_USERNAME,
        text=first_field(payload, 'value2', 'text') or '',
        sku=first_field(payload, 'value3', 'sku'),
    )


def iso_timestamp(now=None):
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def build_spin_event(username, text, sku, index, segment, now=None):
    return {
        'type': 'spin',
        'username': username,
        'text': text,
        'sku': sku,
        'segmentIndex': index,
        'segment': segment,
        'timestamp': iso_timestamp(now),
    }


class SpinRelay:
    """Resolves spins against the segment store and fans results out to viewers"""

    def __init__(self, store, channel, event_logger, rng=None):
        self.store = store
        self.channel = channel
        self.event_logger = event_logger
        self.rng = rng
        self._segments_lock = threading.Lock()
        channel.on_connect(self.greet)

    def spin(self, username, text, sku, record=True):
        segments = self.store.current()
        index = spin_resolver.resolve(sku, segments, self.rng)
        event = build_spin_event(username, text, sku, index, segments[index])

        self.channel.broadcast_all(SPIN_EVENT, event)
        logger.info(f"✅ Spin event emitted to {self.channel.client_count} viewer(s) for {username}: "
                    f"{event['segment'].get('text')} (index {index})")

        if record:
            self.event_logger.append(event)
        return event

    def replace_segments(self, new_segments):
        """Swap and broadcast as one step so viewers always end on the stored list"""
        with self._segments_lock:
            segments = self.store.replace(new_segments)
            self.publish_segments(segments)
        return segments

    def publish_segments(self, segments):
        self.channel.broadcast_all(SEGMENTS_UPDATED_EVENT, segments)

    def greet(self, client_id):
        """Push the current segments to a newly connected client only"""
        self.channel.send_to(client_id, SEGMENTS_UPDATED_EVENT, self.store.current())
