"""Flask extensions and database setup."""
from flask_sqlalchemy import SQLAlchemy

# SQLAlchemy instance
db = SQLAlchemy()
