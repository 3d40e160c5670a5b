from flask import Flask, jsonify
from config import Config
from routes import health_bp, booking_bp, payments_bp, providers_bp, webhook_bp

from models import db
from flask_migrate import Migrate
from services.errors import PaymentError
from services.gateway import init_gateway
from utils.auth_context import load_current_user


def create_app(config_object=Config, gateway=None):
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(booking_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(providers_bp)
    app.register_blueprint(webhook_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    # Stripe client, injectable for tests
    init_gateway(app, gateway)

    @app.errorhandler(PaymentError)
    def _payment_error(exc):
        if exc.status >= 500:
            app.logger.error("%s: %s", exc.code, exc.message)
        return jsonify(exc.to_dict()), exc.status

    @app.before_request
    def _load_user():
        load_current_user()

    app_url = (app.config.get("APP_URL") or "").rstrip("/")
    allow_origin = "*" if (not app_url or "localhost" in app_url) else app_url

    @app.after_request
    def add_security_headers(resp):
        resp.headers["Access-Control-Allow-Origin"] = allow_origin
        resp.headers["Access-Control-Allow-Headers"] = "authorization, x-client-info, apikey, content-type"
        resp.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
        if allow_origin != "*":
            resp.headers["Vary"] = "Origin"
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp


    register_cli(app)


    return app

#-------------------------
import click
from models.user import User, ROLES
from security.session import create_session, revoke_session

def register_cli(app):
    @app.cli.command("create-user")
    @click.argument("email")
    @click.option("--role", type=click.Choice(ROLES), default="customer")
    @click.option("--name", "full_name", default=None)
    def create_user(email, role, full_name):
        """Create a user (bootstrap; identity normally comes from the auth provider)."""
        email = email.strip().lower()
        if User.query.filter_by(email=email).first():
            print("User already exists")
            return
        user = User(email=email, role=role, full_name=full_name)
        db.session.add(user)
        db.session.commit()
        if role == "provider":
            from services.capabilities import open_provider_account
            open_provider_account(user)
        print(f"{user.email} created as {role} ({user.id})")

    @app.cli.command("issue-token")
    @click.argument("email")
    def issue_token(email):
        """Print a bearer token for an existing user."""
        user = User.query.filter_by(email=email.strip().lower()).first()
        if not user:
            print("User not found")
            return
        print(create_session(user.id))

    @app.cli.command("revoke-token")
    @click.argument("token")
    def revoke_token(token):
        """Revoke a bearer token."""
        print("Revoked" if revoke_session(token.strip()) else "Token not found")

#-------------------------




if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
