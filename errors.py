"""Exceptions surfaced to HTTP callers as JSON error bodies."""


class RelayError(Exception):
    """Base error carrying the HTTP status it should be rendered with"""
    status_code = 500

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        return {'error': self.message}


class SegmentValidationError(RelayError):
    """Malformed segment replacement payload"""
    status_code = 400


class WebhookAuthError(RelayError):
    """Missing or incorrect webhook shared secret"""
    status_code = 401


class SegmentPersistenceError(RelayError):
    """Segments were swapped in memory but could not be written to disk"""
    status_code = 500
