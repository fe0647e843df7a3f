"""
This module initializes the Flask application using the application factory pattern.
It loads configuration, wires the extensions and services, and registers blueprints.
"""

# Import the Flask class used to create the web application
from flask import Flask

from .. import db
from ..commands import register_commands
from ..config import Config
from ..extensions import csrf, init_services, login_manager
from ..logger import configure_logging
from ..security import apply_security_headers
from .admin import bp as admin_bp
from .api import bp as api_bp
from .auth import bp as auth_bp
from .blog import bp as blog_bp
from .dashboard import bp as dashboard_bp
from .errors import register_error_handlers
from .helpers import format_date, inject_globals, nl2br
from .middleware import MethodOverrideMiddleware, log_request, start_timer


# Application factory function
def create_app(config=None):
    """
    Create and configure the Flask application.

    - Loads :class:`ffblog.config.Config`, then ``config`` on top of it
    - Configures file logging, the database teardown, CSRF and Flask-Login
    - Builds the cache, event dispatcher, rate limiter and mailer
    - Registers the blog, auth, dashboard, admin and API blueprints

    :param config: A configuration class or a dict of overrides.
    :type config: type or dict or None
    :returns: The configured application.
    :rtype: flask.Flask
    """
    app = Flask(__name__)

    app.config.from_object(Config)
    if isinstance(config, dict):
        app.config.update(config)
    elif config is not None:
        app.config.from_object(config)

    configure_logging(app)
    db.init_app(app)
    csrf.init_app(app)
    login_manager.init_app(app)
    init_services(app)

    # HTML forms send PUT/DELETE as POST + _method
    app.wsgi_app = MethodOverrideMiddleware(app.wsgi_app)

    app.register_blueprint(blog_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(api_bp)
    # The API authenticates with X-API-Key instead of a CSRF token
    csrf.exempt(api_bp)

    app.before_request(start_timer)
    app.after_request(log_request)
    app.after_request(apply_security_headers)
    app.context_processor(inject_globals)
    app.add_template_filter(format_date, "date")
    app.add_template_filter(nl2br, "nl2br")

    register_error_handlers(app)
    register_commands(app)

    app.logger.debug("Application created")
    return app
