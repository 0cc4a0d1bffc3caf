"""
Default logging interface
"""

import logging
from typing import Optional


_LOG_FORMATTER = logging.Formatter(
    "[%(asctime)s][%(threadName)s][%(levelname)s]:%(message)s"
)


def get_default_logger(name: str) -> logging.Logger:
    """
    Get default logger for a given name.

    :param name: The logger name.
    :return: The logger object.
    """

    # Library code may log before the host process configures logging.
    if len(logging.getLogger().handlers) == 0:
        logging.getLogger().addHandler(logging.NullHandler())

    log = logging.getLogger(name)
    log.setLevel(logging.INFO)

    if len(log.handlers) == 0:
        handler = logging.StreamHandler()
        handler.setFormatter(_LOG_FORMATTER)
        log.addHandler(handler)
        log.propagate = False

    return log


class ContextLogger(logging.LoggerAdapter):
    """
    Logger adapter that prefixes every message with a bracketed context,
    e.g. "[CORAL]" or "[CORAL/Base]".
    """

    def __init__(self, logger: logging.Logger, network: str, chain: Optional[str] = None):
        super().__init__(logger, {})
        self.context = network if chain is None else f"{network}/{chain}"

    def process(self, msg, kwargs):
        return f"[{self.context}] {msg}", kwargs


def get_context_logger(
    name: str, network: str, chain: Optional[str] = None
) -> ContextLogger:
    """
    Get a default logger wrapped with network/chain context.

    :param name: The logger name.
    :param network: The monitored network name.
    :param chain: Optional EVM chain name.
    :return: The context logger.
    """
    return ContextLogger(get_default_logger(name), network, chain)
