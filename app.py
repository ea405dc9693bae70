"""
WSGI entry point for the zoo portal.

Exposes ``app`` and ``application`` for WSGI servers. The environment is
selected with ``FLASK_ENV`` (development, testing, production).

Usage Examples:
    gunicorn --config gunicorn.conf.py "app:application"
    python app.py

Author: Zoo Portal Team
Version: 1.0.0
"""

import os

from zoo_portal.app import create_app

application = create_app(os.getenv('FLASK_ENV'))
app = application


if __name__ == '__main__':
    app.run(
        host=os.getenv('HOST', '127.0.0.1'),
        port=int(os.getenv('PORT', '8000')),
        debug=app.config['DEBUG']
    )
