"""shelter_api."""

from .monitoring.logger import configure_logger

# Console logging with defaults; create_app reconfigures it with the configured level
configure_logger()
