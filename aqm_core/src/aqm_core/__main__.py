"""
Canonical entry point for aqm_core package.

This package contains the telemetry domain, application services, and
configuration. Transports and storage live in aqm_server.
"""

import sys

from aqm_core.config.environments import get_settings


def main() -> None:
    """Main entry point for aqm_core package."""
    print("aqm_core - Telemetry domain and application layer package")
    print("This package is not intended to be run directly.")
    print("Use `python -m aqm_server api` to run the service.")

    try:
        config = get_settings()
        print("\nCurrent configuration:")
        print(f"Environment: {config.ENVIRONMENT.value}")
        print(f"Database: {config.DATABASE_URL or '(disabled, in-memory only)'}")
        print(f"MQTT: {config.MQTT_BROKER}:{config.MQTT_PORT} {config.MQTT_TOPIC}")
        print(f"API: {config.API_HOST}:{config.API_PORT}")
        print(
            f"History cap: {config.HISTORY_CAP}, alert cap: {config.ALERT_CAP}, "
            f"online threshold: {config.ONLINE_THRESHOLD_SEC}s"
        )
    except Exception as e:
        print(f"Could not load configuration: {e}")

    sys.exit(0)


if __name__ == "__main__":
    main()
