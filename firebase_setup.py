"""Lazy Firebase Admin SDK bootstrap.

The service keeps running without the Admin SDK: every accessor returns
``None`` when initialization failed, and callers fall back to the REST APIs.
"""
import os

import firebase_admin
from firebase_admin import credentials, firestore, storage

import settings

_app = None
_init_attempted = False
_firestore_client = None
_bucket = None


def _initialize():
    global _app, _init_attempted
    _init_attempted = True

    if firebase_admin._apps:
        _app = firebase_admin.get_app()
        return _app

    options = {
        'projectId': settings.FIREBASE_PROJECT_ID,
        'storageBucket': settings.FIREBASE_STORAGE_BUCKET,
    }

    if settings.FIREBASE_CREDENTIALS_PATH and os.path.exists(settings.FIREBASE_CREDENTIALS_PATH):
        try:
            cred = credentials.Certificate(settings.FIREBASE_CREDENTIALS_PATH)
            _app = firebase_admin.initialize_app(cred, options)
            print(f"[INFO] Firebase Admin SDK initialized from {settings.FIREBASE_CREDENTIALS_PATH}")
            return _app
        except (ValueError, IOError) as exc:
            print(f"[WARN] Service account credentials unusable: {exc}")

    try:
        _app = firebase_admin.initialize_app(credentials.ApplicationDefault(), options)
        print("[INFO] Firebase Admin SDK initialized with application default credentials")
        return _app
    except Exception as exc:
        print(f"[WARN] Application default credentials failed, trying without credentials: {exc}")

    try:
        # Works against the emulator or when credentials come from the environment later on
        _app = firebase_admin.initialize_app(options=options)
        print("[INFO] Firebase Admin SDK initialized with project config only")
    except Exception as exc:
        print(f"[ERROR] Failed to initialize Firebase Admin SDK: {exc}")
        print("[WARN] Admin SDK operations disabled, REST fallbacks will be used")
        _app = None
    return _app


def get_firebase_app():
    if _app is None and not _init_attempted:
        _initialize()
    return _app


def get_firestore_client():
    global _firestore_client
    if _firestore_client is not None:
        return _firestore_client
    firebase_app = get_firebase_app()
    if firebase_app is None:
        return None
    try:
        _firestore_client = firestore.client(app=firebase_app)
    except Exception as exc:
        print(f"[WARN] Firestore client unavailable: {exc}")
        return None
    return _firestore_client


def get_storage_bucket():
    global _bucket
    if _bucket is not None:
        return _bucket
    firebase_app = get_firebase_app()
    if firebase_app is None:
        return None
    try:
        _bucket = storage.bucket(app=firebase_app)
    except Exception as exc:
        print(f"[WARN] Firebase Storage unavailable: {exc}")
        return None
    return _bucket


def reset():
    """Forget cached handles so the next accessor call initializes again."""
    global _app, _init_attempted, _firestore_client, _bucket
    _app = None
    _init_attempted = False
    _firestore_client = None
    _bucket = None
