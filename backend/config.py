import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///' + os.path.join(BASE_DIR, 'jackpot.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # Shared bearer token for the admin charge endpoint
    ADMIN_TOKEN = os.environ.get('ADMIN_TOKEN') or 'change-me'
    # Balance granted once on first /init
    STARTING_BALANCE = int(os.environ.get('STARTING_BALANCE', '10'))
    # Countdown (ticks) and tick length (seconds)
    ROUND_DURATION_SEC = int(os.environ.get('ROUND_DURATION_SEC', '30'))
    ROUND_TICK_SEC = float(os.environ.get('ROUND_TICK_SEC', '1.0'))
    # Probe period for half-open sockets (seconds)
    LIVENESS_INTERVAL_SEC = float(os.environ.get('LIVENESS_INTERVAL_SEC', '30'))
    CORS_ORIGINS = [
        o.strip() for o in os.environ.get(
            'CORS_ORIGINS', 'http://localhost:5173,http://127.0.0.1:5173'
        ).split(',') if o.strip()
    ]
    PORT = int(os.environ.get('PORT', '3000'))
