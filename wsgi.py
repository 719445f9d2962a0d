"""
Flask-Migrate / Alembic entry point.

Usage:
    flask db upgrade
    flask replace-catalogue catalogue.xlsx --actor "Jo Bloggs"
"""

from feature_catalogue import create_app

app = create_app()
