import logging

from flask import Flask, g, request, render_template, jsonify
from flask_socketio import SocketIO
from flask_wtf.csrf import CSRFProtect
from config import Config

socketio = SocketIO()
csrf = CSRFProtect()

logger = logging.getLogger(__name__)


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    from academy.logging_config import configure_logging, assign_request_id
    configure_logging(
        app.config.get('LOG_LEVEL', 'INFO'),
        production=app.config.get('APP_ENV') == 'production',
    )

    csrf.init_app(app)

    # Initialize Firebase
    from academy.firebase_init import init_firebase
    init_firebase(app.config)

    # CORS origins
    allowed_origins = []
    cors_origins = app.config.get('CORS_ALLOWED_ORIGINS', '')
    if cors_origins:
        for origin in cors_origins.split(','):
            origin = origin.strip()
            if origin:
                allowed_origins.append(origin)

    from academy import events  # noqa: F401

    socketio.init_app(
        app,
        cors_allowed_origins=allowed_origins if allowed_origins else None,
        async_mode=app.config.get('SOCKETIO_ASYNC_MODE', 'eventlet')
    )

    from academy.decorators import load_current_user, get_current_user

    @app.before_request
    def before_request():
        assign_request_id(request.headers.get('X-Request-ID'))
        load_current_user()

    @app.after_request
    def after_request(response):
        rid = getattr(g, 'request_id', None)
        if rid:
            response.headers['X-Request-ID'] = rid
        return response

    # Jinja globals are visible inside imported macros; context processors are not.
    from academy.services.payments import format_amount
    app.jinja_env.globals['format_amount'] = format_amount

    @app.context_processor
    def inject_globals():
        return {'current_user': get_current_user()}

    _register_error_handlers(app)

    # Register blueprints
    from academy.routes import (
        main, auth, courses, payments, wishlist,
        instructor, classes, admin
    )
    app.register_blueprint(main.bp)
    app.register_blueprint(auth.bp)
    app.register_blueprint(courses.bp)
    app.register_blueprint(payments.bp)
    app.register_blueprint(wishlist.bp)
    app.register_blueprint(instructor.bp)
    app.register_blueprint(classes.bp)
    app.register_blueprint(admin.bp)

    return app


def _wants_json():
    if request.path.startswith('/api/') or request.is_json:
        return True
    best = request.accept_mimetypes.best_match(['application/json', 'text/html'])
    return best == 'application/json' and request.accept_mimetypes[best] > request.accept_mimetypes['text/html']


def _register_error_handlers(app):
    messages = {
        403: 'You do not have permission to access this page.',
        404: 'The page you are looking for does not exist.',
        500: 'Something went wrong. Please try again later.',
    }

    def _handler(code):
        def handle(error):
            if code == 500:
                logger.exception('Unhandled error on %s', request.path)
            if _wants_json():
                return jsonify({'error': messages[code]}), code
            return render_template(f'errors/{code}.html', message=messages[code]), code
        return handle

    for code in messages:
        app.register_error_handler(code, _handler(code))
