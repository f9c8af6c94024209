import os
from dotenv import load_dotenv

load_dotenv()

class Config:
    SECRET_KEY = os.environ.get('SESSION_SECRET') or os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'
    APP_ENV = os.environ.get('APP_ENV', 'development')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    WTF_CSRF_ENABLED = True
    WTF_CSRF_TIME_LIMIT = None

    FIREBASE_WEB_API_KEY = os.environ.get('FIREBASE_WEB_API_KEY')
    FIREBASE_AUTH_DOMAIN = os.environ.get('FIREBASE_AUTH_DOMAIN', '')
    FIREBASE_PROJECT_ID = os.environ.get('FIREBASE_PROJECT_ID', '')
    FIREBASE_STORAGE_BUCKET = os.environ.get('FIREBASE_STORAGE_BUCKET', '')
    GOOGLE_APPLICATION_CREDENTIALS = os.environ.get('GOOGLE_APPLICATION_CREDENTIALS', './firebase-service-account.json')
    SESSION_COOKIE_DAYS = int(os.environ.get('SESSION_COOKIE_DAYS', 5))

    RAZORPAY_KEY_ID = os.environ.get('RAZORPAY_KEY_ID')
    RAZORPAY_KEY_SECRET = os.environ.get('RAZORPAY_KEY_SECRET')
    PAYMENT_CURRENCY = os.environ.get('PAYMENT_CURRENCY', 'INR')
    PAYMENT_TAX_RATE = float(os.environ.get('PAYMENT_TAX_RATE', 0.18))
    PAYMENT_PROCESSING_FEE = int(os.environ.get('PAYMENT_PROCESSING_FEE', 0))

    CORS_ALLOWED_ORIGINS = os.environ.get('CORS_ALLOWED_ORIGINS', '')
    SOCKETIO_ASYNC_MODE = os.environ.get('SOCKETIO_ASYNC_MODE', 'eventlet')


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret'
    WTF_CSRF_ENABLED = False
    SOCKETIO_ASYNC_MODE = 'threading'
    FIREBASE_WEB_API_KEY = 'test-api-key'
    RAZORPAY_KEY_ID = 'rzp_test_key'
    RAZORPAY_KEY_SECRET = 'rzp_test_secret'
