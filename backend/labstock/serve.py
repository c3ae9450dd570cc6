import logging
import os
from typing import Dict, Optional

import uvicorn

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _ssl_options() -> Dict[str, Optional[str]]:
    options: Dict[str, Optional[str]] = {}
    for env_name, option in (
        ("SSL_CERTFILE", "ssl_certfile"),
        ("SSL_KEYFILE", "ssl_keyfile"),
        ("SSL_CA_CERTS", "ssl_ca_certs"),
        ("SSL_KEYFILE_PASSWORD", "ssl_keyfile_password"),
    ):
        value = os.getenv(env_name)
        if value:
            options[option] = value
    return options


def configure_logging(level: str) -> None:
    """Route the application's module loggers through one root handler."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    logging.getLogger("labstock").setLevel(level.upper())


def main() -> None:
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8000"))
    reload_enabled = os.getenv("RELOAD", "false").lower() in {"1", "true", "yes", "on"}
    log_level = os.getenv("LOG_LEVEL", "info")
    forwarded_allow_ips = os.getenv("FORWARDED_ALLOW_IPS", "*")

    configure_logging(log_level)
    uvicorn.run(
        "labstock.main:app",
        host=host,
        port=port,
        reload=reload_enabled,
        log_level=log_level,
        proxy_headers=True,
        forwarded_allow_ips=forwarded_allow_ips,
        **_ssl_options(),
    )


if __name__ == "__main__":
    main()
