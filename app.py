import base64
import hmac
import logging
from io import BytesIO

import qrcode
from flask import Flask, jsonify, request
from flask_socketio import SocketIO
from werkzeug.exceptions import HTTPException

from broadcast import SocketIOChannel
from config import WEBHOOK_PATH, Settings
from errors import RelayError, SegmentValidationError, WebhookAuthError
from event_logger import EventLogger
from segment_store import SegmentStore
from spins import TEST_TEXT, TEST_USERNAME, SpinRelay, first_field, parse_webhook_payload

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(levelname)s - [%(name)s] - %(message)s'
TOKEN_HEADER = 'x-tikfinity-token'


def configure_logging(settings):
    """Console logging, plus a log file when LOG_FILE is set"""
    handlers = [logging.StreamHandler()]
    if settings.log_file:
        handlers.append(logging.FileHandler(settings.log_file, encoding='utf-8'))
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT, handlers=handlers)


def _request_payload():
    """JSON body, or form fields for platforms that post urlencoded data"""
    if request.is_json:
        data = request.get_json(silent=True)
        return data if isinstance(data, dict) else {}
    return request.form.to_dict()


def _check_webhook_token(settings, payload):
    if not settings.webhook_secret:
        return
    token = request.headers.get(TOKEN_HEADER) or payload.get('secret')
    if not token or not hmac.compare_digest(str(token).encode('utf-8'),
                                            settings.webhook_secret.encode('utf-8')):
        logger.warning("⚠️ Invalid webhook token")
        raise WebhookAuthError("Invalid token")


def create_app(settings=None, rng=None, spawn=None):
    """
    Build the Flask app and its Socket.IO server.
    ``rng`` feeds the random fallback of the spin resolver; ``spawn`` starts the
    background event-log writes (defaults to a Socket.IO background task).
    """
    settings = settings or Settings.from_env()

    app = Flask(__name__)
    app.config.update(MAX_CONTENT_LENGTH=1024 * 1024)
    app.json.ensure_ascii = False

    socketio = SocketIO(app, cors_allowed_origins=[settings.client_origin],
                        ping_timeout=60, ping_interval=25)

    store = SegmentStore(settings.segments_file)
    store.load()
    channel = SocketIOChannel(socketio)
    event_logger = EventLogger(settings.events_log, spawn or socketio.start_background_task)
    relay = SpinRelay(store, channel, event_logger, rng=rng)

    app.extensions['spin_relay'] = relay

    # ==========================================================================
    # CORS
    # ==========================================================================

    @app.before_request
    def reject_foreign_origin():
        origin = request.headers.get('Origin')
        if not settings.origin_allowed(origin):
            logger.warning(f"🚫 CORS: origin not allowed: {origin}")
            return jsonify({'error': f"CORS: origin not allowed: {origin}"}), 403
        return None

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get('Origin')
        if origin and settings.origin_allowed(origin):
            response.headers['Access-Control-Allow-Origin'] = origin
            response.headers['Access-Control-Allow-Credentials'] = 'true'
            response.headers['Access-Control-Allow-Methods'] = 'GET, POST, OPTIONS'
            response.headers['Access-Control-Allow-Headers'] = request.headers.get(
                'Access-Control-Request-Headers', f'Content-Type, {TOKEN_HEADER}')
            response.vary.add('Origin')
        return response

    # ==========================================================================
    # SEGMENTS
    # ==========================================================================

    @app.route('/api/segments', methods=['GET'])
    def get_segments():
        return jsonify({'segments': store.current()})

    @app.route('/api/segments', methods=['POST'])
    def update_segments():
        """Replace the whole segment list and notify every connected viewer"""
        payload = _request_payload()
        segments = relay.replace_segments(payload.get('segments'))
        return jsonify({'success': True, 'segments': segments})

    # ==========================================================================
    # SPINS
    # ==========================================================================

    @app.route(WEBHOOK_PATH, methods=['POST'])
    def tikfinity_webhook():
        """Webhook for TikFinity / IFTTT-style automation platforms"""
        payload = _request_payload()
        logged = {k: v for k, v in payload.items() if k != 'secret'}
        logger.info(f"📥 Webhook received: {logged}")

        _check_webhook_token(settings, payload)

        spin = parse_webhook_payload(payload)
        logger.info(f"👤 User: {spin.username}, SKU: {spin.sku}")

        event = relay.spin(spin.username, spin.text, spin.sku)
        return jsonify({
            'success': True,
            'event': event,
            'message': 'Spin event emitted successfully',
        })

    @app.route('/api/test-spin', methods=['POST'])
    def test_spin():
        """Local stand-in for the webhook: no secret check, not written to the event log"""
        sku = first_field(_request_payload(), 'sku')
        event = relay.spin(TEST_USERNAME, TEST_TEXT, sku, record=False)
        return jsonify({'success': True, 'event': event})

    # ==========================================================================
    # OPERATIONS
    # ==========================================================================

    @app.route('/health')
    def health():
        return jsonify({'status': 'ok', 'segments': store.count()})

    @app.route('/api/qr_code')
    def webhook_qr_code():
        """QR code of the webhook URL, for configuring the automation platform from a phone"""
        if settings.public_url_hints:
            url = settings.webhook_url()
        else:
            url = request.host_url.rstrip('/') + WEBHOOK_PATH

        qr = qrcode.QRCode(version=1, box_size=10, border=5)
        qr.add_data(url)
        qr.make(fit=True)
        img = qr.make_image(fill_color="black", back_color="white")

        buffer = BytesIO()
        img.save(buffer, format='PNG')
        img_str = base64.b64encode(buffer.getvalue()).decode()

        return jsonify({'qr_code': f"data:image/png;base64,{img_str}", 'url': url})

    # ==========================================================================
    # ERROR HANDLERS
    # ==========================================================================

    @app.errorhandler(RelayError)
    def relay_error(error):
        if isinstance(error, SegmentValidationError):
            logger.warning(f"⚠️ Rejected segments update: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def http_error(error):
        return jsonify({'error': error.name}), error.code

    @app.errorhandler(Exception)
    def internal_error(error):
        logger.exception(f"💥 Unhandled error on {request.method} {request.path}: {error}")
        return jsonify({'error': 'Internal server error'}), 500

    return app, socketio


def log_startup_banner(settings, store):
    logger.info("🎡 SPIN RELAY")
    logger.info("=" * 60)
    logger.info(f"🚀 Server running on {settings.host}:{settings.port}")
    logger.info(f"📊 Segments loaded: {store.count()}")
    logger.info(f"🔐 Webhook secret: {'CONFIGURED' if settings.webhook_secret else 'DISABLED'}")

    if settings.public_url_hints:
        logger.info(f"🌐 Detected public URL(s): {', '.join(settings.public_url_hints)}")
        logger.info(f"🎯 Suggested webhook URL: {settings.webhook_url()}")
    else:
        logger.info("ℹ️ No public URL found in environment variables.")
        logger.info("👉 Check your hosting dashboard for the public URL.")
        logger.info(f"(Meanwhile the local webhook is: {settings.webhook_url()})")
    logger.info("=" * 60)


def main():
    try:
        settings = Settings.from_env()
    except ValueError as e:
        configure_logging(Settings())
        logger.error(f"💥 Invalid configuration: {e}")
        raise SystemExit(1)
    configure_logging(settings)

    try:
        app, socketio = create_app(settings)
        log_startup_banner(settings, app.extensions['spin_relay'].store)
        socketio.run(app, host=settings.host, port=settings.port,
                     debug=False, allow_unsafe_werkzeug=True)
    except KeyboardInterrupt:
        logger.info("🛑 Server shutdown requested")
    except Exception as e:
        logger.exception(f"💥 Server startup failed: {e}")
        raise SystemExit(1)


if __name__ == '__main__':
    main()
