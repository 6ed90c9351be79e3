import os

from flask import Flask
from supabase import create_client

from .auth.routes import auth_bp
from .errors import register_error_handlers
from .main.routes import main_bp
from .settings import load_settings


def create_app():
    app = Flask(__name__)
    app.secret_key = os.environ["SECRET_KEY"]

    supabase = create_client(
        os.environ["SUPABASE_URL"],
        os.environ["SUPABASE_SERVICE_KEY"],
    )
    app.config["SUPABASE"] = supabase
    app.config["SUPABASE_URL"] = os.environ["SUPABASE_URL"]

    load_settings(app)

    app.register_blueprint(auth_bp)
    app.register_blueprint(main_bp)
    register_error_handlers(app)

    return app
