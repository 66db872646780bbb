# -*- coding: utf-8 -*-
# -----------------------------------------------------------------------------
# log.py - Shared logger for the OAT safe time flip trigger. Follows the
# logging layout of the AlpycaDevice template.
#
# -----------------------------------------------------------------------------
# MIT License
#
# Copyright (c) 2022-2024 Bob Denny
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.
# -----------------------------------------------------------------------------

import logging
import logging.handlers
import time

LOGGER_NAME = 'oat_safetime'
LOG_FORMAT = '%(asctime)s.%(msecs)03d %(levelname)s %(name)s %(message)s'
DATE_FORMAT = '%Y-%m-%dT%H:%M:%S'

logger: logging.Logger = None   # Set by init_logging()


def init_logging(config) -> logging.Logger:
    """Create the shared logger from configuration.

    Time stamps are UTC with milliseconds. Output goes to a rotating log
    file and, when enabled, to stdout.

    Args:
        config: OATConfig instance with the [logging] section.

    Returns:
        The configured logger, also stored in ``log.logger``.
    """
    global logger

    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)
    formatter.converter = time.gmtime

    new_logger = logging.getLogger(LOGGER_NAME)
    new_logger.setLevel(config.log_level)
    new_logger.propagate = False

    for handler in new_logger.handlers[:]:
        handler.close()
        new_logger.removeHandler(handler)

    file_handler = logging.handlers.RotatingFileHandler(
        config.log_file,
        mode='w',
        delay=True,
        maxBytes=int(config.max_size_mb) * 1000000,
        backupCount=int(config.num_keep_logs)
    )
    file_handler.setFormatter(formatter)
    new_logger.addHandler(file_handler)

    if config.log_to_stdout:
        console = logging.StreamHandler()
        console.setFormatter(formatter)
        new_logger.addHandler(console)

    logger = new_logger
    return new_logger


def get_logger(name: str = None) -> logging.Logger:
    """Return a child of the shared logger (or the shared logger itself)."""
    base = logger or logging.getLogger(LOGGER_NAME)
    return base.getChild(name) if name else base
