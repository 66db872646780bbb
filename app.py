# -*- coding: utf-8 -*-
# -----------------------------------------------------------------------------
# app.py - Standalone OAT safe time flip monitor
#
# Connects to the mount named in oatconfig.toml and flips it when the
# firmware's safe time reaches the configured threshold.
#
# Python Compatibility: Requires Python 3.8 or later
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
import asyncio
import sys
import threading
import traceback

import log
from OATConfig import OATConfig, OATConfigError
from flip_monitor import FlipMonitor
from flip_state import TriggerSnapshot
from mount_factory import create_mount
from notifications import Notification
from safe_time_trigger import SafeTimeTrigger


def custom_excepthook(exc_type, exc_value, exc_traceback):
    """Last-chance exception handler

    Caution:
        Hook this as last-chance only after the config info
        has been initialized and the logger is set up!

    Assures that any unhandled exceptions are logged to our logfile
    instead of going to stdout only.
    """
    # Do not print exception when user cancels the program
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_traceback)
        return

    log.logger.error(f'An uncaught {exc_type.__name__} exception occurred:')
    log.logger.error(exc_value)

    if exc_traceback:
        for line in traceback.format_tb(exc_traceback):
            log.logger.error(repr(line))


def log_notification(note: Notification) -> None:
    """Mirror user notifications into the log."""
    log.logger.info(f'[{note.severity.value.upper()}] {note.message}')


def log_snapshot(snapshot: TriggerSnapshot) -> None:
    predicted = snapshot.predicted_flip_instant
    log.logger.debug(
        f'State: {snapshot.phase.name} safe={snapshot.safe_time_display} '
        f'flip={predicted.strftime("%H:%M:%S") if predicted else "--:--:--"}'
    )


# ===========
# APP STARTUP
# ===========
def main():
    """ Application startup"""

    try:
        config = OATConfig()
    except OATConfigError as ex:
        print(f'==STARTUP== {ex}', file=sys.stderr)
        return 1

    logger = log.init_logging(config)

    # -----------------------------
    # Last-Chance Exception Handler
    # -----------------------------
    sys.excepthook = custom_excepthook

    mount = create_mount(config, logger)
    if mount is None:
        return 1

    logger.info(f'==STARTUP== Connecting to mount via {config.transport}')
    try:
        connected = mount.connect()
    except Exception as ex:
        logger.error(f'==STARTUP== Mount connection failed: {ex}')
        return 1
    if connected is False:
        logger.error(f'==STARTUP== Mount connection failed: {mount.get_error_message()}')
        return 1

    trigger = SafeTimeTrigger(
        mount,
        settings=config.flip_settings(),
        logger=logger,
        safe_time_command=config.safe_time_command
    )
    trigger.notifier.add_listener(log_notification)
    trigger.publisher.subscribe(log_snapshot)

    monitor = FlipMonitor(trigger, tick_seconds=config.tick_seconds, logger=log.get_logger('monitor'))
    token = threading.Event()

    logger.info(f'==STARTUP== {trigger}. Time stamps are UTC.')
    try:
        asyncio.run(monitor.run(token))
    except KeyboardInterrupt:
        logger.info('==SHUTDOWN== Interrupted by user')
        token.set()
    finally:
        mount.disconnect()

    return 0


# ========================
if __name__ == '__main__':
    sys.exit(main())
# ========================
