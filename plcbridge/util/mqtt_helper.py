"""MQTT utility helpers for the PLC MQTT bridge."""

from __future__ import annotations

import logging
import ssl
from pathlib import Path

from plcbridge.config.settings import RuntimeConfig

logger = logging.getLogger("plcbridge.util.mqtt")

MQTT_TLS_MIN_VERSION = ssl.TLSVersion.TLSv1_2


def configure_tls_context(config: RuntimeConfig) -> ssl.SSLContext | None:
    """Create an ssl.SSLContext for ``mqtts://`` brokers, None otherwise."""
    if not config.tls_enabled:
        return None

    try:
        if config.mqtt_cafile:
            if not Path(config.mqtt_cafile).exists():
                raise RuntimeError(f"MQTT TLS CA file missing: {config.mqtt_cafile}")
            context = ssl.create_default_context(ssl.Purpose.SERVER_AUTH, cafile=config.mqtt_cafile)
        else:
            context = ssl.create_default_context(ssl.Purpose.SERVER_AUTH)

        context.minimum_version = MQTT_TLS_MIN_VERSION

        if config.mqtt_tls_insecure:
            logger.warning("MQTT TLS certificate verification is disabled (--tls-insecure).")
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE

        return context
    except (OSError, ssl.SSLError, ValueError) as exc:
        raise RuntimeError(f"TLS setup failed: {exc}") from exc
