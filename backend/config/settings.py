"""
Django settings for the grounded document Q&A backend.
"""
import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.getenv('SECRET_KEY', 'django-insecure-dev-key-change-in-production')

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = os.getenv('DEBUG', 'False').lower() in ('true', '1', 'yes')

ALLOWED_HOSTS = [
    h.strip() for h in os.getenv('ALLOWED_HOSTS', 'localhost,127.0.0.1,testserver').split(',')
]

# Application definition
INSTALLED_APPS = [
    'django.contrib.contenttypes',
    'apps.docs',
    'apps.indexing',
    'apps.rag',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.middleware.common.CommonMiddleware',
]

ROOT_URLCONF = 'config.urls'

TEMPLATES = []

WSGI_APPLICATION = 'config.wsgi.application'
ASGI_APPLICATION = 'config.asgi.application'

# Database
# Using environment variable for database URL
DATABASE_URL = os.getenv('DATABASE_URL', '')
if DATABASE_URL:
    import re
    match = re.match(
        r'postgres(?:ql)?://(?P<user>[^:]+):(?P<password>[^@]+)@(?P<host>[^:]+):(?P<port>\d+)/(?P<name>.+)',
        DATABASE_URL
    )
    if not match:
        raise ValueError(f"Unsupported DATABASE_URL: {DATABASE_URL}")
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.postgresql',
            'NAME': match.group('name'),
            'USER': match.group('user'),
            'PASSWORD': match.group('password'),
            'HOST': match.group('host'),
            'PORT': match.group('port'),
        }
    }
else:
    # Vector search needs pgvector; sqlite only serves tooling that never queries chunks
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': BASE_DIR / 'db.sqlite3',
        }
    }

# Internationalization
LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

# Default primary key field type
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# =============================================================================
# Chunking / Retrieval
# =============================================================================
CHUNK_SIZE_TOKENS = int(os.getenv('CHUNK_SIZE_TOKENS', '800'))
OVERLAP_TOKENS = int(os.getenv('OVERLAP_TOKENS', '150'))
TOP_K = int(os.getenv('TOP_K', '6'))

# =============================================================================
# Model backends
# =============================================================================
# Defaults target Ollama (local, free). To use a hosted OpenAI-compatible API,
# set USE_OLLAMA=false and provide OPENAI_API_KEY.
OPENAI_API_KEY = os.getenv('OPENAI_API_KEY', '')
OPENAI_BASE_URL = os.getenv('OPENAI_BASE_URL', 'https://api.openai.com/v1')
OPENAI_TIMEOUT = int(os.getenv('OPENAI_TIMEOUT', '120'))

USE_OLLAMA = (
    os.getenv('USE_OLLAMA', '').lower() in ('true', '1', 'yes')
    or not OPENAI_API_KEY
)
_default_provider = 'ollama' if USE_OLLAMA else 'openai'
EMBEDDING_PROVIDER = os.getenv('EMBEDDING_PROVIDER', _default_provider).lower()
LLM_PROVIDER = os.getenv('LLM_PROVIDER', _default_provider).lower()

OLLAMA_HOST = os.getenv('OLLAMA_HOST', 'http://localhost:11434')

# nomic-embed-text produces 768 dimensions. Switching to another embedding
# model means changing EMBEDDING_DIMENSIONS and re-indexing every document.
EMBEDDING_MODEL = os.getenv('EMBEDDING_MODEL', 'nomic-embed-text')
EMBEDDING_DIMENSIONS = int(os.getenv('EMBEDDING_DIMENSIONS', '768'))
EMBEDDING_CONCURRENCY = int(os.getenv('EMBEDDING_CONCURRENCY', '4'))

CHAT_MODEL = os.getenv('CHAT_MODEL', 'llama3.1:8b')
CHAT_TEMPERATURE = float(os.getenv('CHAT_TEMPERATURE', '0.1'))

# Timeout settings (in seconds) - increase for slower hardware
OLLAMA_EMBED_TIMEOUT = int(os.getenv('OLLAMA_EMBED_TIMEOUT', '120'))  # 2 min
OLLAMA_CHAT_TIMEOUT = int(os.getenv('OLLAMA_CHAT_TIMEOUT', '600'))  # 10 min

# =============================================================================
# File Upload Configuration
# =============================================================================
UPLOAD_ROOT = Path(os.getenv('UPLOAD_DIR', './data/uploads'))

# Maximum file size in bytes (15MB default)
MAX_FILE_SIZE = int(os.getenv('MAX_FILE_SIZE_MB', '15')) * 1024 * 1024

ALLOWED_CONTENT_TYPES = [
    'application/pdf',
    'text/plain',
]

# Demo user (simple auth stub)
DEMO_USER_ID = os.getenv('DEMO_USER_ID', 'demo-user-1')

# =============================================================================
# Logging
# =============================================================================
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{levelname} {asctime} {module} {message}',
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
        'level': 'INFO',
    },
    'loggers': {
        'apps.rag': {
            'handlers': ['console'],
            'level': 'DEBUG',
            'propagate': False,
        },
        'apps.indexing': {
            'handlers': ['console'],
            'level': 'DEBUG',
            'propagate': False,
        },
    },
}
