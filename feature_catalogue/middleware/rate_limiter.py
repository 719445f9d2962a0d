"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.
The Limiter instance is created in feature_catalogue/__init__.py with no
default limits; this module applies limits per route category.

Usage:
    from feature_catalogue.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

UPLOAD_LIMIT = "10/minute"
ADMIN_WRITE_LIMIT = "60/minute"
WRITE_METHODS = ["POST", "PUT", "PATCH", "DELETE"]


def init_rate_limits(app, limiter):
    """
    Apply rate limits to the admin blueprints.

    Limits (per remote IP):
        - Bulk upload / catalogue replacement:  10/minute
        - Other admin writes:                   60/minute
        - Reads, browsing, assessments:         unlimited

    Rate limiting is disabled in testing mode.
    """
    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    bp = app.blueprints.get("bulk_upload")
    if bp:
        limiter.limit(UPLOAD_LIMIT, methods=WRITE_METHODS)(bp)

    for bp_name in ("admin", "audit"):
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(ADMIN_WRITE_LIMIT, methods=WRITE_METHODS)(bp)

    app.logger.info("Rate limiter configured — upload: %s, admin write: %s", UPLOAD_LIMIT, ADMIN_WRITE_LIMIT)
