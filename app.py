from __future__ import annotations
import logging
from datetime import datetime, timezone

from flask import Flask, jsonify

import config
from errors import StoreError
from store import Store

logger = logging.getLogger(__name__)


def create_app(store: Store) -> Flask:
    app = Flask(__name__)
    app.extensions["jinro_store"] = store

    @app.route("/api/health")
    def health():
        try: store.ping()
        except StoreError as exc:
            logger.warning("health check failed: %s", exc)
            return jsonify({"success": False, "error": "Database connection failed"}), 503
        return jsonify({"success": True, "data": {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "database": "connected",
            "version": config.APP_VERSION,
        }})

    return app


def main():
    logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    store = Store.open(config.DATABASE_URL, config.MIGRATIONS_PATH)
    logger.info("Database initialized successfully")
    try:
        create_app(store).run(host=config.HOST, port=config.PORT)
    finally:
        store.close()


if __name__ == "__main__":
    main()
