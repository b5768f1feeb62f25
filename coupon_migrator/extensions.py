"""
Flask extensions initialization.
"""
from flask_caching import Cache
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

# Persisted migration runs
db = SQLAlchemy()
migrate = Migrate()

# Export-batch promotion lists, keyed by store (configured in utils.cache)
cache = Cache()
