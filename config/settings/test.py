# config/settings/test.py

from .base import *

# === TESTS ===

DEBUG = False

SECRET_KEY = 'tandem-test-secret-key'

ALLOWED_HOSTS = ['testserver', 'localhost']

# File-backed SQLite so worker threads in the concurrency tests share the
# database. IMMEDIATE transactions make concurrent writers queue on the
# database lock instead of failing with "database is locked".
DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': BASE_DIR / 'test-db.sqlite3',
        'OPTIONS': {
            'transaction_mode': 'IMMEDIATE',
            'timeout': 20,
        },
        'TEST': {
            'NAME': BASE_DIR / 'test-db.sqlite3',
        },
    }
}

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'tandem-test-cache',
    }
}

SESSION_ENGINE = 'django.contrib.sessions.backends.db'

CHANNEL_LAYERS = {
    'default': {
        'BACKEND': 'channels.layers.InMemoryChannelLayer'
    }
}

STORAGES['staticfiles'] = {
    'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage',
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

# Console only, quiet
LOGGING['handlers'] = {
    'console': {
        'level': 'WARNING',
        'class': 'logging.StreamHandler',
        'formatter': 'simple',
    },
}
LOGGING['root'] = {'handlers': ['console'], 'level': 'WARNING'}
# 'apps' propagates to root so pytest's caplog sees it
LOGGING['loggers'] = {
    'apps': {
        'level': 'WARNING',
        'propagate': True,
    },
}

BOARD_LOCK_TIMEOUT = 5.0
