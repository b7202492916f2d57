"""
Extension singletons for the approval portal.

Bound to the app in portal.create_app(); models, services and blueprints
import them from here so nothing depends on a concrete app object.
"""

from flask_login import LoginManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from flask_wtf import CSRFProtect

db = SQLAlchemy()
migrate = Migrate()
csrf = CSRFProtect()

login_manager = LoginManager()
# Drop the session when the client's IP/user-agent fingerprint changes
login_manager.session_protection = "strong"
