from logvault.logging import configure_logging, get_logger, shutdown_logging

__all__ = ["configure_logging", "get_logger", "shutdown_logging"]
