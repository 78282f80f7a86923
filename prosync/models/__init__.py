"""SQLAlchemy handle shared by the relational storage backend."""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
