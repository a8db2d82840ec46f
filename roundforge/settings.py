from pathlib import Path

import environ
import sentry_sdk
import structlog

from roundforge.sentry_utils import CustomLoggingIntegration, before_send

BASE_DIR = Path(__file__).resolve().parent.parent

env = environ.Env(
    DEBUG=(bool, False),
)
environ.Env.read_env(BASE_DIR / ".env")

SECRET_KEY = env("SECRET_KEY", default="roundforge-insecure-development-key")
DEBUG = env("DEBUG")
ENVIRONMENT = env("ENVIRONMENT", default="dev")

ALLOWED_HOSTS = env.list("ALLOWED_HOSTS", default=["localhost", "127.0.0.1"])

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "django_q",
    "content_pipeline.apps.ContentPipelineConfig",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
]

ROOT_URLCONF = "roundforge.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

DATABASES = {
    "default": env.db("DATABASE_URL", default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}"),
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

CACHES = {
    "default": env.cache("CACHE_URL", default="locmemcache://roundforge"),
}

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

# AI / external services
DEFAULT_AI_MODEL = env("DEFAULT_AI_MODEL", default="google-gla:gemini-2.5-flash")
SERPAPI_API_KEY = env("SERPAPI_API_KEY", default="")
TRENDS_GEO = env("TRENDS_GEO", default="IN")
TRENDS_TIMEFRAME = env("TRENDS_TIMEFRAME", default="today 12-m")
TRENDS_MIN_SCORE = env.float("TRENDS_MIN_SCORE", default=100.0)
DEFAULT_BLOG_TOPICS = env.list(
    "DEFAULT_BLOG_TOPICS",
    default=["artificial intelligence", "personal finance", "electric vehicles"],
)

WORDPRESS_API_URL = env("WORDPRESS_API_URL", default="")
WORDPRESS_USERNAME = env("WORDPRESS_USERNAME", default="")
WORDPRESS_APP_PASSWORD = env("WORDPRESS_APP_PASSWORD", default="")

# Orchestration
PIPELINE_RETRY_BUDGET = env.int("PIPELINE_RETRY_BUDGET", default=2)
PIPELINE_RETRY_DELAY_SECONDS = env.float("PIPELINE_RETRY_DELAY_SECONDS", default=5.0)
PIPELINE_RUN_TIMEOUT_SECONDS = env.float("PIPELINE_RUN_TIMEOUT_SECONDS", default=60 * 30)

# Must outlive the run timeout by one in-flight round plus a retry delay.
Q_CLUSTER_TIMEOUT_HEADROOM_SECONDS = 60 * 15
Q_CLUSTER_TIMEOUT = env.int(
    "Q_CLUSTER_TIMEOUT",
    default=int(PIPELINE_RUN_TIMEOUT_SECONDS or 60 * 30) + Q_CLUSTER_TIMEOUT_HEADROOM_SECONDS,
)

Q_CLUSTER = {
    "name": "roundforge-q",
    "timeout": Q_CLUSTER_TIMEOUT,
    "retry": env.int("Q_CLUSTER_RETRY", default=Q_CLUSTER_TIMEOUT + 60),
    "max_attempts": 1,
    "workers": env.int("Q_CLUSTER_WORKERS", default=2),
    "orm": "default",
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "json_formatter": {
            "()": structlog.stdlib.ProcessorFormatter,
            "processor": structlog.processors.JSONRenderer(),
        },
        "plain_console": {
            "()": structlog.stdlib.ProcessorFormatter,
            "processor": structlog.dev.ConsoleRenderer(),
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "plain_console" if DEBUG else "json_formatter",
        },
    },
    "loggers": {
        "roundforge": {
            "handlers": ["console"],
            "level": env("LOG_LEVEL", default="INFO"),
            "propagate": False,
        },
        "django_q": {
            "handlers": ["console"],
            "level": "WARNING",
        },
    },
}

structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ],
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

SENTRY_DSN = env("SENTRY_DSN", default="")
if SENTRY_DSN:
    sentry_sdk.init(
        dsn=SENTRY_DSN,
        environment=ENVIRONMENT,
        integrations=[CustomLoggingIntegration()],
        before_send=before_send,
        traces_sample_rate=env.float("SENTRY_TRACES_SAMPLE_RATE", default=0.0),
    )
