"""
Studio Client Portal — persistence layer.

A single Flask-SQLAlchemy instance shared by every model module.
Model modules import ``db`` from here; the app factory calls
``db.init_app(app)``.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
