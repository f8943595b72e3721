"""Handler modules for CRD resources."""

# Import handlers to register them - all handlers register themselves via @kopf decorators
from . import access_ca_certificate  # noqa: F401
from . import provider  # noqa: F401
