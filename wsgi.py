"""WSGI entry point (gunicorn wsgi:app, flask --app wsgi db upgrade)."""

from coverage_tracker import create_app

app = create_app()
