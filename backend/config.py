import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///scoreboard.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # Player count accepted when a session starts
    MIN_PLAYERS = int(os.environ.get('MIN_PLAYERS', '2'))
    MAX_PLAYERS = int(os.environ.get('MAX_PLAYERS', '4'))
    # Run record writes on the request thread instead of the write queue worker
    PERSIST_INLINE = os.environ.get('PERSIST_INLINE', '0').lower() in ('1', 'true', 'yes')
    # Pause before the winner screen is requested (seconds)
    NAVIGATE_DELAY_SEC = float(os.environ.get('NAVIGATE_DELAY_SEC', '0.1'))
    # How long closing a session waits for its last save (seconds)
    CLOSE_SAVE_TIMEOUT_SEC = float(os.environ.get('CLOSE_SAVE_TIMEOUT_SEC', '5'))
    # Timestamps stored on game records
    DATE_FORMAT = os.environ.get('DATE_FORMAT', '%m/%d/%Y')
    TIME_FORMAT = os.environ.get('TIME_FORMAT', '%I:%M:%S %p')
    # Live sessions untouched for this long are saved and dropped (seconds)
    SESSION_IDLE_TTL_SEC = float(os.environ.get('SESSION_IDLE_TTL_SEC', '3600'))
