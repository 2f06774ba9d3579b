import os

from dotenv import load_dotenv

load_dotenv()


class Config:
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-me')
    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL', 'sqlite:///users.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    GOOGLE_CLIENT_ID = os.getenv('GOOGLE_CLIENT_ID', '')
    GOOGLE_CLIENT_SECRET = os.getenv('GOOGLE_CLIENT_SECRET', '')
    GOOGLE_CALLBACK_URL = os.getenv('GOOGLE_CALLBACK_URL', 'http://localhost:3000/auth/google/callback')

    # Offline Drive credentials written by `flask drive-authorize`
    DRIVE_TOKEN_FILE = os.getenv('DRIVE_TOKEN_FILE', 'tokens.json')
    DRIVE_FOLDER_ID = os.getenv('DRIVE_FOLDER_ID') or None
    # Not the app's own callback, so the code stays in the address bar
    DRIVE_REDIRECT_URI = os.getenv('DRIVE_REDIRECT_URI', 'http://localhost:8765/')

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
    PORT = int(os.getenv('PORT', '3000'))
