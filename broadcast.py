"""
Real-time push to connected viewer clients.

``BroadcastChannel`` holds the connection registry and handler hooks; the
transport (Socket.IO here) lives in a subclass so it can be swapped.
"""

import logging
import threading

from flask import request

logger = logging.getLogger(__name__)


class BroadcastChannel:
    """Connection registry with broadcast/send hooks"""

    def __init__(self):
        self._clients = set()
        self._connect_handlers = []
        self._disconnect_handlers = []
        self._lock = threading.Lock()

    def broadcast_all(self, event, payload):
        raise NotImplementedError

    def send_to(self, client_id, event, payload):
        raise NotImplementedError

    def on_connect(self, handler):
        """Register ``handler(client_id)`` for every new connection"""
        self._connect_handlers.append(handler)
        return handler

    def on_disconnect(self, handler):
        self._disconnect_handlers.append(handler)
        return handler

    @property
    def client_count(self):
        with self._lock:
            return len(self._clients)

    def client_connected(self, client_id):
        with self._lock:
            self._clients.add(client_id)
            total = len(self._clients)
        logger.info(f"🔌 Client connected: {client_id} (Total: {total})")
        self._notify(self._connect_handlers, client_id)

    def client_disconnected(self, client_id):
        with self._lock:
            self._clients.discard(client_id)
            remaining = len(self._clients)
        logger.info(f"🔌 Client disconnected: {client_id} (Remaining: {remaining})")
        self._notify(self._disconnect_handlers, client_id)

    def _notify(self, handlers, client_id):
        for handler in list(handlers):
            try:
                handler(client_id)
            except Exception:
                logger.exception(f"💥 Connection handler {handler!r} failed for {client_id}")


class SocketIOChannel(BroadcastChannel):
    """Flask-SocketIO transport; the Socket.IO session id is the client id"""

    def __init__(self, socketio, namespace='/'):
        super().__init__()
        self.socketio = socketio
        self.namespace = namespace
        socketio.on_event('connect', self._handle_connect, namespace=namespace)
        socketio.on_event('disconnect', self._handle_disconnect, namespace=namespace)

    def broadcast_all(self, event, payload):
        logger.debug(f"📡 Emitting '{event}' to all clients")
        self.socketio.emit(event, payload, namespace=self.namespace)

    def send_to(self, client_id, event, payload):
        logger.debug(f"📡 Emitting '{event}' to {client_id}")
        self.socketio.emit(event, payload, to=client_id, namespace=self.namespace)

    def _handle_connect(self, auth=None):
        self.client_connected(request.sid)

    def _handle_disconnect(self, reason=None):
        self.client_disconnected(request.sid)
