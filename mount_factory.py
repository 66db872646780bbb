# -*- coding: utf-8 -*-
"""
Mount Factory

Creates the telescope control for the transport named in configuration.
"""

import logging
from typing import Optional

from alpaca_mount import AlpacaMount
from flip_interfaces import TelescopeControl
from oat_serial import LX200SerialMount


TRANSPORT_ALPACA = "alpaca"
TRANSPORT_SERIAL = "serial"


def create_mount(config, logger: logging.Logger) -> Optional[TelescopeControl]:
    """Create a mount based on configuration.

    Args:
        config: OATConfig instance with the [device] section.
        logger: Logger instance.

    Returns:
        AlpacaMount or LX200SerialMount (not yet connected), or None if
        the transport is unknown.
    """
    transport = config.transport

    if transport == TRANSPORT_ALPACA:
        logger.debug(
            f"Creating Alpaca mount: {config.alpaca_address}:{config.alpaca_port}, "
            f"device {config.alpaca_device_number}"
        )
        return AlpacaMount(
            logger,
            address=config.alpaca_address,
            port=config.alpaca_port,
            device_number=config.alpaca_device_number
        )

    if transport == TRANSPORT_SERIAL:
        logger.debug(f"Creating serial mount: {config.serial_port} @ {config.baudrate}")
        return LX200SerialMount(logger, port=config.serial_port, baudrate=config.baudrate)

    logger.error(
        f"Unknown mount transport: {transport} (expected one of: {', '.join(get_available_transports())})"
    )
    return None


def get_available_transports():
    """Return the supported transport names."""
    return [TRANSPORT_ALPACA, TRANSPORT_SERIAL]
