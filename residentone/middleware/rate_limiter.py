"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.
The Limiter instance is created in residentone/__init__.py with no default
limits; this module applies granular limits per route category.

Usage:
    from residentone.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""


# Per-blueprint limits (per remote IP)
BLUEPRINT_LIMITS = {
    "stage": "120/minute",    # board clicks, bulk assignment fan-out
    "studio": "200/minute",   # projects / rooms / team reads
}

# Email fan-out endpoints get a tighter ceiling on top of the blueprint limit
NOTIFY_LIMIT = "30/minute"
NOTIFY_ENDPOINTS = ("stage.notify_stage", "stage.send_team_notifications")


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Rate limiting is disabled in testing mode.
    """

    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    for bp_name, limit in BLUEPRINT_LIMITS.items():
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(limit)(bp)

    for endpoint in NOTIFY_ENDPOINTS:
        view = app.view_functions.get(endpoint)
        if view:
            app.view_functions[endpoint] = limiter.limit(NOTIFY_LIMIT)(view)

    app.logger.info(
        "Rate limiter configured — stage: %s, studio: %s, notify: %s",
        BLUEPRINT_LIMITS["stage"], BLUEPRINT_LIMITS["studio"], NOTIFY_LIMIT,
    )
