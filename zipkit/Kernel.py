#!/usr/bin/env python
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0
#
# ZipKit - ZIP archive assembly and extraction
# Copyright (C) 2025-2026 ZipKit contributors
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import os
import logging

# Error reporting stays off unless ZIPKIT_SENTRY_DSN is set explicitly.
import sentry_sdk

from sentry_sdk.integrations.logging import SentryHandler, LoggingIntegration

PUBLIC_VERSION = '1.0.0'

# Map string levels to logging constants for standard level names
LOG_LEVEL_MAPPING = {
    'DEBUG': logging.DEBUG,
    'INFO': logging.INFO,
    'WARNING': logging.WARNING,
    'ERROR': logging.ERROR,
    'CRITICAL': logging.CRITICAL,
}

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'


def configureGlobalLogLevel(logLevel):
    """
    Configure the global logging level for the application.
    This affects all loggers created via getLogger().

    Args:
        logLevel: Logging level (logging.DEBUG, logging.INFO, etc.)
    """
    rootLogger = logging.getLogger()
    rootLogger.setLevel(logLevel)

    formatter = logging.Formatter(LOG_FORMAT)

    # Add console handler if none exists
    if not rootLogger.handlers:
        consoleHandler = logging.StreamHandler()
        consoleHandler.setLevel(logLevel)
        consoleHandler.setFormatter(formatter)
        rootLogger.addHandler(consoleHandler)
    else:
        # Update existing handlers
        for handler in rootLogger.handlers:
            if isinstance(handler, logging.StreamHandler) and not isinstance(handler, SentryHandler):
                handler.setLevel(logLevel)
                handler.setFormatter(formatter)


if os.getenv('ZIPKIT_LOGGING_LEVEL'):
    configureGlobalLogLevel(LOG_LEVEL_MAPPING.get(os.getenv('ZIPKIT_LOGGING_LEVEL').upper(), logging.WARNING))


def _initSentry():
    """Initialize Sentry once when a DSN is configured. Returns True if it was initialized now."""
    sentryDsn = os.getenv('ZIPKIT_SENTRY_DSN')
    if not sentryDsn or sentry_sdk.get_client().is_active():
        return False

    sentry_sdk.init(
        dsn=sentryDsn,
        release=PUBLIC_VERSION,
        default_integrations=False,
        integrations=[LoggingIntegration()],
    )
    return True


def getLogger(name, version=PUBLIC_VERSION):
    """
    Get a logger with Sentry integration.

    The returned adapter carries the application version so that reported
    events can be matched with a release.

    Args:
        name: Logger name
        version: Version string for logging context
    """
    try:
        sentryInitialized = _initSentry()

        logger = logging.getLogger(name)

        if not any(isinstance(h, SentryHandler) for h in logger.handlers):
            syslog = SentryHandler()
            syslog.setFormatter(logging.Formatter('%(asctime)s version[%(version)s] : %(message)s'))
            logger.addHandler(syslog)

        adapter = logging.LoggerAdapter(logger, {'version': version or 'unknown'})

        if sentryInitialized:
            adapter.debug('Sentry initialized')

        return adapter

    except Exception as e:
        fallbackLogger = logging.getLogger(name)

        # If Sentry setup fails, log the error and continue with standard logging
        fallbackLogger.warning(f"Failed to initialize Sentry: {e}")

        return fallbackLogger
