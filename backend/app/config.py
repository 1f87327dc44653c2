import os
from dotenv import load_dotenv

load_dotenv()


def _flag(name, default="false"):
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret")
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", SECRET_KEY)
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Commerce platform
    COMMERCE_BACKEND = os.getenv("COMMERCE_BACKEND", "shopify")  # shopify | memory
    SHOPIFY_STORE_DOMAIN = os.getenv("SHOPIFY_STORE_DOMAIN")
    SHOPIFY_ACCESS_TOKEN = os.getenv("SHOPIFY_ACCESS_TOKEN")
    SHOPIFY_API_VERSION = os.getenv("SHOPIFY_API_VERSION", "2024-01")
    SHOPIFY_TIMEOUT = float(os.getenv("SHOPIFY_TIMEOUT", "30"))
    SHOPIFY_VENDOR = os.getenv("SHOPIFY_VENDOR", "LocoMotivate")

    # Cover image generation (optional)
    COVER_IMAGE_ENDPOINT = os.getenv("COVER_IMAGE_ENDPOINT")
    COVER_IMAGE_API_KEY = os.getenv("COVER_IMAGE_API_KEY")
    COVER_IMAGE_TIMEOUT = float(os.getenv("COVER_IMAGE_TIMEOUT", "60"))

    # Publish job queue
    PUBLISH_JOBS_EAGER = _flag("PUBLISH_JOBS_EAGER")
    WORKER_POLL_INTERVAL = float(os.getenv("WORKER_POLL_INTERVAL", "5"))


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.getenv("DEV_DATABASE_URI", "sqlite:///bundles-dev.db")
    COMMERCE_BACKEND = os.getenv("COMMERCE_BACKEND", "memory")
    PUBLISH_JOBS_EAGER = _flag("PUBLISH_JOBS_EAGER", "true")


class ProductionConfig(BaseConfig):
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URI")


class TestingConfig(BaseConfig):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    JWT_SECRET_KEY = "test-secret-key-with-enough-length-for-hs256"
    COMMERCE_BACKEND = "memory"
    COVER_IMAGE_ENDPOINT = None
    PUBLISH_JOBS_EAGER = False
    LOG_LEVEL = "DEBUG"


config_by_name = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}
