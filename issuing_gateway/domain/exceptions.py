"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class ValidationError(DomainException):
    """Authorization request is malformed or missing required fields"""

    pass


class PolicyConfigError(DomainException):
    """Spending policy document failed validation at load time"""

    pass


class ProviderAPIError(DomainException):
    """Issuing provider API returned an error or is unavailable"""

    pass


class ProviderTimeoutError(ProviderAPIError):
    """Issuing provider did not answer inside the callback budget"""

    pass


class WebhookVerificationError(DomainException):
    """Inbound webhook failed signature verification or could not be parsed"""

    pass
