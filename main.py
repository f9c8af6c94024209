import logging
import os

from academy import create_app, socketio

app = create_app()
logger = logging.getLogger('academy.main')


def run():
    debug = os.environ.get('FLASK_DEBUG', 'false').lower() in ('true', '1')
    host = os.environ.get('HOST', '0.0.0.0')
    port = int(os.environ.get('PORT', 8080))
    logger.info('Starting Data Rhythm Academy on %s:%s (%s, async mode %s)',
                host, port, app.config.get('APP_ENV'), socketio.async_mode)
    socketio.run(app, host=host, port=port, debug=debug, use_reloader=debug)


if __name__ == '__main__':
    run()
