import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to the app as slotmarket.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "slotmarket.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # API token lifetime: 8 hours
    SESSION_LIFETIME_SECONDS = 8 * 60 * 60

    # Stripe
    STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
    STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")
    STRIPE_API_VERSION = os.getenv("STRIPE_API_VERSION", "2024-06-20")
    STRIPE_WEBHOOK_TOLERANCE_SECONDS = int(os.getenv("STRIPE_WEBHOOK_TOLERANCE_SECONDS", "300"))

    # Marketplace economics
    PLATFORM_FEE_RATE = os.getenv("PLATFORM_FEE_RATE", "0.10")  # parsed as Decimal
    DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "cad")

    # Frontend origin, used for CORS (localhost => "*")
    APP_URL = os.getenv("APP_URL", "http://localhost:5173")

    # Basic app settings
    DEBUG = False


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    STRIPE_SECRET_KEY = "sk_test_dummy"
    STRIPE_WEBHOOK_SECRET = "whsec_test_secret"
    APP_URL = "https://market.example.com"
