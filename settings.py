import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = os.path.dirname(os.path.abspath(__file__))


def load_firebase_api_key() -> Optional[str]:
    env_key = os.getenv('FIREBASE_WEB_API_KEY') or os.getenv('FIREBASE_API_KEY')
    if env_key:
        return env_key.strip()

    # The service account JSON doesn't contain apiKey, it only exists for the client SDK
    return None


def env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ('1', 'true', 'yes', 'on')


APP_ENV = os.getenv('APP_ENV', 'development').strip().lower()
IS_PRODUCTION = APP_ENV == 'production'
IS_DEVELOPMENT = APP_ENV == 'development'

FIREBASE_WEB_API_KEY = load_firebase_api_key()
FIREBASE_PROJECT_ID = os.getenv('FIREBASE_PROJECT_ID', 'name-it-e674c')
FIREBASE_STORAGE_BUCKET = os.getenv('FIREBASE_STORAGE_BUCKET', f'{FIREBASE_PROJECT_ID}.firebasestorage.app')
FIREBASE_CREDENTIALS_PATH = (
    os.getenv('FIREBASE_CREDENTIALS_PATH')
    or os.getenv('GOOGLE_APPLICATION_CREDENTIALS')
    or os.path.join(BASE_DIR, 'firebase_config.json')
)

FRONTEND_URL = (os.getenv('FRONTEND_URL') or '').rstrip('/')
PORT = int(os.getenv('PORT', '3001'))

# Decoding an ID token without its signature is only acceptable while developing
ALLOW_UNVERIFIED_TOKENS = env_flag('ALLOW_UNVERIFIED_TOKENS', not IS_PRODUCTION)

REQUEST_TIMEOUT = float(os.getenv('REQUEST_TIMEOUT', '10'))
MAX_UPLOAD_BYTES = 5 * 1024 * 1024
INLINE_IMAGE_MAX_CHARS = 900000
MAX_POPULAR_PRODUCTS = 4
DEFAULT_ORDER_LIMIT = 50

DEV_ORIGINS = [
    'http://localhost:3000',
    'http://localhost:8080',
    'http://localhost:5500',
    'http://127.0.0.1:5500',
    'http://127.0.0.1:3000',
    'http://127.0.0.1:8080',
    'http://127.0.0.1:5501',
]

if not FIREBASE_WEB_API_KEY:
    print("[WARN] Firebase Web API key not found. Login, registration and the Firestore REST fallback will fail.")
