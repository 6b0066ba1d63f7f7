from __future__ import annotations

import argparse
import logging
import socket

from conciliador.reference_store import open_reference_store
from conciliador.settings import Settings, configure_logging
from conciliador.web_server import create_app

logger = logging.getLogger("conciliador.run_server")


def _ensure_port_free(host: str, port: int) -> bool:
    # Returns True if we can bind (port free), False otherwise.
    try:
        s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            s.bind((host, port))
            return True
        finally:
            s.close()
    except OSError:
        return False


def main() -> int:
    p = argparse.ArgumentParser(description="Conciliador ML + Odoo - API de logística y cálculo")
    p.add_argument("--host", default="0.0.0.0", help="Bind host (use 0.0.0.0 for LAN)")
    p.add_argument("--port", type=int, default=4000, help="Port")
    p.add_argument("--debug", action="store_true", help="Flask debug mode")
    args = p.parse_args()

    settings = Settings()
    configure_logging("DEBUG" if args.debug else settings.LOG_LEVEL)

    if not _ensure_port_free(args.host, args.port):
        logger.error("El servidor ya está iniciado (o el puerto está ocupado): %s:%s", args.host, args.port)
        return 2

    settings.ensure_instance()
    store = open_reference_store(settings)
    app = create_app(store, settings)

    logger.info("API de logística escuchando en http://%s:%s/ (backend=%s)", args.host, args.port, settings.REFERENCE_BACKEND)
    app.run(host=args.host, port=args.port, debug=args.debug)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
