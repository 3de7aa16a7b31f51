"""
Django settings for the corridor project.

Values are read from the environment so the same settings module serves
local development, tests and deployment.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def _env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


SECRET_KEY = os.environ.get('DJANGO_SECRET_KEY', 'django-insecure-corridor-dev-key')

DEBUG = _env_bool('DJANGO_DEBUG', True)

ALLOWED_HOSTS = [
    host.strip()
    for host in os.environ.get('DJANGO_ALLOWED_HOSTS', 'localhost,127.0.0.1').split(',')
    if host.strip()
]


INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'rest_framework',
    'drf_spectacular',
    'rides',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'corridor.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'corridor.wsgi.application'
ASGI_APPLICATION = 'corridor.asgi.application'


DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': os.environ.get('DATABASE_PATH', str(BASE_DIR / 'db.sqlite3')),
    }
}

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'corridor-default',
    },
    'ride_search': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'corridor-ride-search',
    },
}

AUTH_PASSWORD_VALIDATORS = [
    {'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator'},
    {'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator'},
    {'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator'},
    {'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator'},
]

LANGUAGE_CODE = 'en-us'
TIME_ZONE = os.environ.get('DJANGO_TIME_ZONE', 'Africa/Maputo')
USE_I18N = True
USE_TZ = True

STATIC_URL = 'static/'
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'


REST_FRAMEWORK = {
    'DEFAULT_SCHEMA_CLASS': 'drf_spectacular.openapi.AutoSchema',
    'DEFAULT_PAGINATION_CLASS': 'rest_framework.pagination.PageNumberPagination',
    'PAGE_SIZE': 20,
    'COERCE_DECIMAL_TO_STRING': False,
}

SPECTACULAR_SETTINGS = {
    'TITLE': 'Corridor Ride Search API',
    'DESCRIPTION': 'Ranks available rides against a rider\'s origin/destination corridor.',
    'VERSION': '1.0.0',
    'SERVE_INCLUDE_SCHEMA': False,
}


# Ride search
RIDE_SEARCH_DEFAULT_RADIUS_KM = float(os.environ.get('RIDE_SEARCH_DEFAULT_RADIUS_KM', 100))
RIDE_SEARCH_MIN_RADIUS_KM = float(os.environ.get('RIDE_SEARCH_MIN_RADIUS_KM', 1))
RIDE_SEARCH_MAX_RADIUS_KM = float(os.environ.get('RIDE_SEARCH_MAX_RADIUS_KM', 500))
RIDE_SEARCH_DEFAULT_MAX_RESULTS = int(os.environ.get('RIDE_SEARCH_DEFAULT_MAX_RESULTS', 20))
RIDE_SEARCH_MAX_RESULTS_CAP = int(os.environ.get('RIDE_SEARCH_MAX_RESULTS_CAP', 100))
RIDE_SEARCH_CANDIDATE_BATCH_SIZE = int(os.environ.get('RIDE_SEARCH_CANDIDATE_BATCH_SIZE', 1000))
RIDE_SEARCH_CACHE_ALIAS = os.environ.get('RIDE_SEARCH_CACHE_ALIAS', 'ride_search')
RIDE_SEARCH_CACHE_TTL_SECONDS = int(os.environ.get('RIDE_SEARCH_CACHE_TTL_SECONDS', 30))


LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{asctime} {levelname} {name} {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'WARNING',
    },
    'loggers': {
        'rides': {
            'handlers': ['console'],
            'level': os.environ.get('RIDES_LOG_LEVEL', 'INFO'),
            'propagate': False,
        },
    },
}
