import logging

from pesantren import create_app, socketio

logger = logging.getLogger(__name__)

app = create_app()

if __name__ == '__main__':
    logger.info('Pesantren Connect listening on %s:%s', app.config['HOST'], app.config['PORT'])
    socketio.run(app, host=app.config['HOST'], port=app.config['PORT'], debug=app.config['DEBUG'])
