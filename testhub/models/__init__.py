"""
Test Management Hub
Model package — shared SQLAlchemy handle.

Usage:
    from testhub.models import db
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
