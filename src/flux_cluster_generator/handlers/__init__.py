"""Handler modules for watched resources."""

# Import handlers to register them - all handlers register themselves via @kopf decorators
from . import namespace  # noqa: F401
from . import secret  # noqa: F401
