"""
Feature Catalogue
SQLAlchemy extension instance shared by every model module.

Usage:
    from feature_catalogue.models import db
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
