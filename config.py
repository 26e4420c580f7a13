"""
Runtime configuration for the spin relay.
All settings come from environment variables so the same build runs locally
and on hosted platforms (Railway, Render, Vercel).
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional

DEFAULT_CLIENT_ORIGIN = 'http://localhost:3000'
DEFAULT_PORT = 3001
DEFAULT_HOST = '0.0.0.0'
WEBHOOK_PATH = '/webhook/tikfinity'

# Checked in order; the first hit is used for the suggested webhook URL
PUBLIC_URL_VARIABLES = (
    'RAILWAY_STATIC_URL',
    'RAILWAY_STATIC_URLS',
    'RAILWAY_PUBLIC_URL',
    'PUBLIC_URL',
    'APP_URL',
    'VERCEL_URL',
    'RENDER_EXTERNAL_URL',
)


def _env_str(environ, name):
    value = environ.get(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _env_int(environ, name, default):
    value = _env_str(environ, name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")


@dataclass
class Settings:
    client_origin: str = DEFAULT_CLIENT_ORIGIN
    port: int = DEFAULT_PORT
    host: str = DEFAULT_HOST
    webhook_secret: Optional[str] = None
    data_dir: str = 'data'
    log_level: str = 'INFO'
    log_file: Optional[str] = None
    public_url_hints: List[str] = field(default_factory=list)

    @classmethod
    def from_env(cls, environ=None):
        """Build settings from ``os.environ`` (or the given mapping)"""
        environ = os.environ if environ is None else environ
        return cls(
            client_origin=_env_str(environ, 'NEXT_PUBLIC_CLIENT_ORIGIN') or DEFAULT_CLIENT_ORIGIN,
            port=_env_int(environ, 'PORT', DEFAULT_PORT),
            host=_env_str(environ, 'HOST') or DEFAULT_HOST,
            webhook_secret=_env_str(environ, 'TIKFINITY_SECRET'),
            data_dir=_env_str(environ, 'DATA_DIR') or 'data',
            log_level=(_env_str(environ, 'LOG_LEVEL') or 'INFO').upper(),
            log_file=_env_str(environ, 'LOG_FILE'),
            public_url_hints=collect_public_urls(environ),
        )

    @property
    def segments_file(self):
        return os.path.join(self.data_dir, 'segments.json')

    @property
    def events_log(self):
        return os.path.join(self.data_dir, 'events.log')

    def origin_allowed(self, origin):
        """Requests without an Origin (curl, the automation platform) are always allowed"""
        if not origin:
            return True
        return origin == self.client_origin or 'localhost' in origin

    def webhook_url(self):
        if self.public_url_hints:
            return self.public_url_hints[0].rstrip('/') + WEBHOOK_PATH
        return f"http://localhost:{self.port}{WEBHOOK_PATH}"


def collect_public_urls(environ=None):
    """Public URLs advertised by the hosting platform, in priority order"""
    environ = os.environ if environ is None else environ
    urls = []
    for name in PUBLIC_URL_VARIABLES:
        value = _env_str(environ, name)
        if not value:
            continue
        if name == 'VERCEL_URL':
            value = f"https://{value}"
        urls.append(value)
    return urls
