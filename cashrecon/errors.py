"""Structured input rejection for the finance engine."""


class FinanceInputError(ValueError):
    """Whole-input problem that the caller must fix before anything is parsed.

    Carries a machine-readable ``code``, an HTTP-like ``status_code`` for the
    request layer and optional ``details`` (for example received/max counts).
    Per-row defects never raise this; they are dropped and counted instead.
    """

    def __init__(self, message, code='BAD_REQUEST', details=None, status_code=400):
        super().__init__(message)
        self.message = message
        self.code = str(code or 'BAD_REQUEST')
        self.details = details
        self.status_code = status_code

    @classmethod
    def bad_request(cls, message, details=None, code='BAD_REQUEST'):
        return cls(message, code=code, details=details, status_code=400)

    @classmethod
    def payload_too_large(cls, message='Payload too large', details=None, code='PAYLOAD_TOO_LARGE'):
        return cls(message, code=code, details=details, status_code=413)

    def to_dict(self):
        return {'code': self.code, 'message': self.message, 'details': self.details}

    def __repr__(self):
        return f"FinanceInputError(code={self.code!r}, message={self.message!r}, details={self.details!r})"
