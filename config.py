import os

from dotenv import load_dotenv

# Load .env file if it exists
load_dotenv()


class Config:
    """
    Centralized configuration management.
    All sensitive values are loaded from environment variables.
    """
    # File Paths
    BASE_DIR = os.path.dirname(os.path.abspath(__file__))
    DATA_FILE_PATH = os.environ.get("DATA_FILE_PATH", os.path.join(BASE_DIR, 'advising_data.json'))

    # Data Backend: 'supabase' for the hosted store, 'json' for a local file
    DATA_BACKEND = os.environ.get("DATA_BACKEND", "supabase")
    SUPABASE_URL = os.environ.get("SUPABASE_URL")
    SUPABASE_KEY = os.environ.get("SUPABASE_KEY")
    REQUEST_TIMEOUT = int(os.environ.get("REQUEST_TIMEOUT", "15"))

    # Local copy of saved schedules
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "SQLALCHEMY_DATABASE_URI",
        os.environ.get("DATABASE_URL", f"sqlite:///{os.path.join(BASE_DIR, 'schedules.db')}")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Scheduling Parameters
    MIN_CREDITS = int(os.environ.get("MIN_CREDITS", "15"))
    MAX_CREDITS = int(os.environ.get("MAX_CREDITS", "18"))
    DEFAULT_STRATEGY = os.environ.get("DEFAULT_STRATEGY", "optimized")

    # Resolved at the API boundary when a request leaves them out
    DEFAULT_STUDENT_ID = os.environ.get("DEFAULT_STUDENT_ID")
    DEFAULT_TERM = os.environ.get("DEFAULT_TERM", "Spring 2025")

    # Session Configuration
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev_key_change_in_production")

    # Logging
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


class DevelopmentConfig(Config):
    DEBUG = True
    LOG_LEVEL = "DEBUG"


class ProductionConfig(Config):
    DEBUG = False
    LOG_LEVEL = "WARNING"


class TestConfig(Config):
    DEBUG = True
    TESTING = True
    # Local data only; no network access during tests
    DATA_BACKEND = "json"
    DATA_FILE_PATH = os.path.join(Config.BASE_DIR, 'tests', 'data', 'advising_data.json')
    SQLALCHEMY_DATABASE_URI = "sqlite://"


def get_config():
    """Get configuration based on environment."""
    env = os.environ.get('FLASK_ENV', 'development')

    config_map = {
        'production': ProductionConfig,
        'development': DevelopmentConfig,
        'testing': TestConfig
    }

    return config_map.get(env, DevelopmentConfig)


def validate_config(config=None):
    """Validate that required configuration is present."""
    config = config or get_config()
    issues = []

    if config.DATA_BACKEND == "supabase":
        if not config.SUPABASE_URL or not config.SUPABASE_KEY:
            issues.append("Supabase backend selected but SUPABASE_URL / SUPABASE_KEY are not set.")
    elif config.DATA_BACKEND == "json":
        if not os.path.exists(config.DATA_FILE_PATH):
            issues.append(f"JSON backend selected but {config.DATA_FILE_PATH} does not exist.")
    else:
        issues.append(f"Unknown DATA_BACKEND '{config.DATA_BACKEND}'. Use 'supabase' or 'json'.")

    if config.MIN_CREDITS > config.MAX_CREDITS:
        issues.append(f"MIN_CREDITS ({config.MIN_CREDITS}) is greater than MAX_CREDITS ({config.MAX_CREDITS}).")

    if config.SECRET_KEY == "dev_key_change_in_production" and os.environ.get('FLASK_ENV') == 'production':
        issues.append("Using default SECRET_KEY in production. Set SECRET_KEY environment variable.")

    return issues
