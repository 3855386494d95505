import os
import sys
from pathlib import Path
from typing import Dict, Any
from dotenv import load_dotenv
from urllib.parse import urlparse
import sentry_sdk

load_dotenv()

IN_TEST = (
    "pytest" in sys.modules
    or any("pytest" in arg for arg in sys.argv)
    or os.environ.get("PYTEST_CURRENT_TEST")
)

SENTRY_DSN = os.getenv("SENTRY_DSN")
if SENTRY_DSN:
    sentry_sdk.init(
        dsn=SENTRY_DSN,
        send_default_pii=True,
        enable_logs=True,
    )

DISABLE_RATE_LIMITING = os.getenv("DISABLE_RATE_LIMITING", "False").lower() == "true"

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    if not IN_TEST:
        raise ValueError("SECRET_KEY is not set")
    SECRET_KEY = "cyberctf-test-secret-key"

DEBUG = os.getenv("DEBUG", "True").lower() == "true"

ALLOWED_HOSTS = os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(
    ","
)
if not ALLOWED_HOSTS:
    raise ValueError("ALLOWED_HOSTS is not set")

INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "cyberctf.apps.CyberctfConfig",
    "user_auth",
    "challenge",
    "admin_panel",
    "main",
    "notifications",
    "tasks",
    "events.apps.EventsConfig",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "user_auth.middleware_security.UserStatusMiddleware",
    "user_auth.middleware_security.SecurityHeadersMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "cyberctf.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
            ],
        },
    },
]

WSGI_APPLICATION = "cyberctf.wsgi.application"

DB_CONN_MAX_AGE = int(os.getenv("DB_CONN_MAX_AGE", "60"))

DATABASES: Dict[str, Dict[str, Any]]

sqlalchemy_uri = os.getenv("SQLALCHEMY_DATABASE_URI", "")
if sqlalchemy_uri:
    if sqlalchemy_uri.startswith("mysql://") or sqlalchemy_uri.startswith(
        "mysql+pymysql://"
    ):
        uri_for_parsing = sqlalchemy_uri.replace("mysql+pymysql://", "mysql://")
        parsed = urlparse(uri_for_parsing)
        DATABASES = {
            "default": {
                "ENGINE": "django.db.backends.mysql",
                "NAME": parsed.path.lstrip("/") or "cyberctf",
                "USER": parsed.username or "root",
                "PASSWORD": parsed.password or "",
                "HOST": parsed.hostname or "localhost",
                "PORT": parsed.port or "3306",
                "CONN_MAX_AGE": DB_CONN_MAX_AGE,
                "OPTIONS": {
                    "charset": "utf8mb4",
                    "connect_timeout": 10,
                    "read_timeout": 30,
                    "write_timeout": 30,
                    "isolation_level": "read committed",
                },
            }
        }
    elif sqlalchemy_uri.startswith("postgres://") or sqlalchemy_uri.startswith(
        "postgresql://"
    ):
        parsed = urlparse(sqlalchemy_uri.replace("postgres://", "postgresql://"))
        DATABASES = {
            "default": {
                "ENGINE": "django.db.backends.postgresql",
                "NAME": parsed.path.lstrip("/") or "cyberctf",
                "USER": parsed.username or "postgres",
                "PASSWORD": parsed.password or "",
                "HOST": parsed.hostname or "localhost",
                "PORT": parsed.port or "5432",
                "CONN_MAX_AGE": DB_CONN_MAX_AGE,
                "OPTIONS": {
                    "connect_timeout": 10,
                },
            }
        }
    elif sqlalchemy_uri.startswith("sqlite:///"):
        db_path = sqlalchemy_uri.replace("sqlite:///", "")
        DATABASES = {
            "default": {
                "ENGINE": "django.db.backends.sqlite3",
                "NAME": db_path or "db.sqlite3",
            }
        }
    else:
        DATABASES = {
            "default": {
                "ENGINE": "django.db.backends.sqlite3",
                "NAME": str(BASE_DIR / "db.sqlite3"),
            }
        }
else:
    db_name = os.getenv("DB_NAME")
    if db_name:
        db_engine = os.getenv("DB_ENGINE", "postgresql").lower()
        if db_engine == "postgresql" or db_engine == "postgres":
            DATABASES = {
                "default": {
                    "ENGINE": "django.db.backends.postgresql",
                    "NAME": db_name,
                    "USER": os.getenv("DB_USER", "postgres"),
                    "PASSWORD": os.getenv("DB_PASSWORD", ""),
                    "HOST": os.getenv("DB_HOST", "localhost"),
                    "PORT": os.getenv("DB_PORT", "5432"),
                    "CONN_MAX_AGE": DB_CONN_MAX_AGE,
                    "OPTIONS": {
                        "connect_timeout": 10,
                    },
                }
            }
        else:
            DATABASES = {
                "default": {
                    "ENGINE": "django.db.backends.mysql",
                    "NAME": db_name,
                    "USER": os.getenv("DB_USER", "root"),
                    "PASSWORD": os.getenv("DB_PASSWORD", ""),
                    "HOST": os.getenv("DB_HOST", "localhost"),
                    "PORT": os.getenv("DB_PORT", "3306"),
                    "CONN_MAX_AGE": DB_CONN_MAX_AGE,
                    "OPTIONS": {
                        "charset": "utf8mb4",
                        "connect_timeout": 10,
                        "read_timeout": 30,
                        "write_timeout": 30,
                        "isolation_level": "read committed",
                    },
                }
            }
    else:
        DATABASES = {
            "default": {
                "ENGINE": "django.db.backends.sqlite3",
                "NAME": str(BASE_DIR / "db.sqlite3"),
            }
        }

AUTH_PASSWORD_VALIDATORS = [
    {
        "NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.MinimumLengthValidator",
        "OPTIONS": {
            "min_length": 8,
        },
    },
]

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

SESSION_COOKIE_NAME = "cyberctf_session"
SESSION_COOKIE_HTTPONLY = True
SESSION_COOKIE_SAMESITE = "Lax"
SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "False").lower() == "true"
SESSION_COOKIE_AGE = 86400 * 7

SECURE_CONTENT_TYPE_NOSNIFF = True
SECURE_BROWSER_XSS_FILTER = True
CSRF_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "False").lower() == "true"

LOGIN_URL = "/user/login/"

SERVER_NAME = os.getenv("SERVER_NAME", "localhost:8080")

REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))
REDIS_DB = int(os.getenv("REDIS_DB", "0"))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD", "")
REDIS_URL = (
    f"redis://:{REDIS_PASSWORD}@{REDIS_HOST}:{REDIS_PORT}/{REDIS_DB}"
    if REDIS_PASSWORD
    else f"redis://{REDIS_HOST}:{REDIS_PORT}/{REDIS_DB}"
)

CACHES = {
    "default": {
        "BACKEND": "django_redis.cache.RedisCache",
        "LOCATION": REDIS_URL,
        "OPTIONS": {
            "CLIENT_CLASS": "django_redis.client.DefaultClient",
        },
        "KEY_PREFIX": "cyberctf_cache",
    }
}

CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", REDIS_URL)
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", REDIS_URL)
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_TIMEZONE = "UTC"
CELERY_TASK_ALWAYS_EAGER = bool(IN_TEST)

CHALLENGES_DIRECTORY = os.getenv("CHALLENGES_DIRECTORY", "challenges")

CTF_NAME = os.getenv("CTF_NAME", "CyberCTF")
FLAG_FORMAT = os.getenv("FLAG_FORMAT", "CyberCTF{...}")
FLAG_MAX_LENGTH = int(os.getenv("FLAG_MAX_LENGTH", "500"))

# 0 keeps first blood a badge only; the classic variant awards +50.
FIRST_BLOOD_BONUS_POINTS = int(os.getenv("FIRST_BLOOD_BONUS_POINTS", "0"))

FLAG_RATE_LIMIT_DELAY_STEP = int(os.getenv("FLAG_RATE_LIMIT_DELAY_STEP", "5"))
FLAG_RATE_LIMIT_MAX_DELAY = int(os.getenv("FLAG_RATE_LIMIT_MAX_DELAY", "15"))
FLAG_RATE_LIMIT_STORE = os.getenv(
    "FLAG_RATE_LIMIT_STORE", "services.rate_limiter.DatabaseRateLimitStore"
)

LEADERBOARD_SIZE = int(os.getenv("LEADERBOARD_SIZE", "50"))
FORENSICS_MAX_SUBMISSIONS = int(os.getenv("FORENSICS_MAX_SUBMISSIONS", "1000"))

ADMIN_USERNAME = os.getenv("ADMIN_USERNAME", "admin")
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@cyberctf.local")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "")

LOGGING: Dict[str, Any] = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{levelname} {asctime} {module} {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "level": "DEBUG",
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": "INFO",
    },
}

if not IN_TEST:
    LOG_DIR = os.getenv("LOG_DIR", os.path.join(BASE_DIR, "logs"))
    os.makedirs(LOG_DIR, exist_ok=True)
    LOGGING["handlers"]["file"] = {
        "level": "INFO",
        "class": "logging.handlers.RotatingFileHandler",
        "filename": os.path.join(LOG_DIR, "django.log"),
        "maxBytes": 1024 * 1024 * 15,
        "backupCount": 10,
        "formatter": "verbose",
    }
    LOGGING["root"]["handlers"].append("file")

AUTH_USER_MODEL = "user_auth.User"
