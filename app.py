import sys
from datetime import datetime, timezone

from firebase_admin import auth as firebase_auth
from firebase_admin import exceptions as firebase_exceptions
from flask import Flask, jsonify
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

import settings
from admin_routes import admin_bp
from api_helpers import ApiError, send_error
from auth_routes import auth_bp
from firestore_rest import FirestoreRestError
from order_routes import orders_bp
from product_routes import products_bp

FIREBASE_AUTH_MESSAGES = {
    firebase_auth.UserNotFoundError: 'User not found',
    firebase_auth.EmailAlreadyExistsError: 'Email already exists',
    firebase_auth.UidAlreadyExistsError: 'User already exists',
    firebase_auth.InvalidIdTokenError: 'Invalid credentials',
}

HTTP_MESSAGES = {
    404: 'Route not found',
    405: 'Method not allowed',
    413: 'File size must be less than 5MB',
}


def cors_origins():
    if not settings.IS_PRODUCTION:
        return '*'
    return [origin for origin in [settings.FRONTEND_URL, *settings.DEV_ORIGINS] if origin]


def register_error_handlers(app: Flask):
    @app.errorhandler(ApiError)
    def handle_api_error(exc):
        return send_error(exc.message, exc.status, exc.error)

    @app.errorhandler(FirestoreRestError)
    def handle_firestore_rest_error(exc):
        print(f"[ERROR] Firestore REST failure: {exc}")
        if exc.status_code == 403:
            return send_error('Permission denied. Please check your Firestore security rules.', 403, exc)
        if exc.status_code == 401:
            return send_error('Authentication failed. Please try logging in again.', 401, exc)
        return send_error(str(exc), 500, exc)

    @app.errorhandler(firebase_exceptions.FirebaseError)
    def handle_firebase_error(exc):
        print(f"[ERROR] Firebase error: {exc}")
        for error_type, message in FIREBASE_AUTH_MESSAGES.items():
            if isinstance(exc, error_type):
                return send_error(message, 400, exc)
        if isinstance(exc, firebase_exceptions.PermissionDeniedError):
            return send_error('Permission denied', 403, exc)
        if isinstance(exc, firebase_exceptions.NotFoundError):
            return send_error('Resource not found', 404, exc)
        return send_error(str(exc) or 'Internal server error', 500, exc)

    @app.errorhandler(HTTPException)
    def handle_http_error(exc):
        message = HTTP_MESSAGES.get(exc.code, exc.description)
        return send_error(message, exc.code or 500)

    @app.errorhandler(Exception)
    def handle_unexpected_error(exc):
        print(f"[ERROR] Unhandled error: {exc}")
        return send_error(str(exc) or 'Internal server error', 500, exc)


def create_app() -> Flask:
    app = Flask(__name__)
    # Leaves room for multipart overhead, image_storage enforces the exact limit
    app.config['MAX_CONTENT_LENGTH'] = settings.MAX_UPLOAD_BYTES + 1024 * 1024
    app.json.sort_keys = False

    CORS(
        app,
        origins=cors_origins(),
        supports_credentials=True,
        methods=['GET', 'POST', 'PUT', 'DELETE', 'PATCH', 'OPTIONS'],
        allow_headers=['Content-Type', 'Authorization', 'X-Requested-With'],
        expose_headers=['Content-Range', 'X-Content-Range'],
    )

    app.register_blueprint(auth_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(orders_bp)

    @app.route('/')
    def root():
        return jsonify({'message': 'Server is running!'})

    @app.route('/health')
    def health():
        return jsonify({'status': 'ok', 'timestamp': datetime.now(timezone.utc).isoformat()})

    register_error_handlers(app)
    return app


app = create_app()

if __name__ == '__main__':
    print("Starting Flask server...")
    print(f"Admin API running on http://localhost:{settings.PORT}")
    print(f"Health check: http://localhost:{settings.PORT}/health")
    try:
        app.run(debug=settings.IS_DEVELOPMENT, port=settings.PORT)
    except OSError as exc:
        print(f"[ERROR] Server failed to start on port {settings.PORT}: {exc}")
        print("[INFO] Stop the process using the port or set a different PORT environment variable.")
        sys.exit(1)
