from __future__ import annotations

from dotenv import load_dotenv
from flask import Flask
from flask_cors import CORS

from app.middlewares.error_handler import init_error_handlers
from app.middlewares.logging import init_request_logging
from app.middlewares.request_id import init_request_id
from app.routes.core import core_bp
from app.routes.employees import employees_bp
from app.routes.recruitment import recruitment_bp
from app.utils.logging import setup_logging
from cache_layer import configure_cache
from config import get_config
from db import Base, init_engine


def create_app() -> Flask:
    load_dotenv()

    cfg = get_config()
    setup_logging(cfg.LOG_LEVEL)

    engine = init_engine(cfg.DATABASE_URL, pool_size=cfg.DB_POOL_SIZE, echo=cfg.DB_ECHO)

    import models  # noqa: F401  registers tables on Base.metadata

    Base.metadata.create_all(bind=engine)

    # Lightweight schema evolution (adds new columns/indexes on existing databases).
    from schema import ensure_schema

    ensure_schema(engine)

    configure_cache(ttl=cfg.CACHE_TTL_SECONDS, max_items=cfg.CACHE_MAX_ITEMS)

    app = Flask(__name__)
    app.config["CFG"] = cfg
    app.json.sort_keys = False

    CORS(
        app,
        origins=cfg.CORS_ORIGINS,
        supports_credentials=cfg.CORS_ALLOW_CREDENTIALS,
        allow_headers=["Content-Type", "X-Request-ID", "X-Actor-Id", "X-Actor-Role"],
        expose_headers=["X-Request-ID"],
        methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        max_age=3600,
    )

    init_request_id(app)
    init_request_logging(app)
    init_error_handlers(app)

    app.register_blueprint(core_bp)
    app.register_blueprint(employees_bp, url_prefix="/api")
    app.register_blueprint(recruitment_bp, url_prefix="/api")

    return app
