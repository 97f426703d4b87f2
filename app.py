"""WSGI entry point: ``flask --app app run`` or ``gunicorn app:app``."""
import os

from docqa import create_app

app = create_app(os.getenv('FLASK_ENV', 'development'))

if __name__ == '__main__':
    app.run(host='0.0.0.0', port=int(os.getenv('PORT', '3000')))
