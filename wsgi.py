"""
WSGI / Flask CLI entry point.

Usage:
    flask --app wsgi db upgrade
    flask --app wsgi run-job email_queue_drain
    flask --app wsgi seed-demo
"""

from app import create_app

app = create_app()
