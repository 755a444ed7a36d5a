import logging
import os

from dotenv import load_dotenv

load_dotenv()

DEFAULT_JWT_SECRET = 'default-secret'


class Config:
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL', 'sqlite:///finance.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JWT_SECRET = os.environ.get('JWT_SECRET')
    TOKEN_LIFETIME_DAYS = int(os.environ.get('TOKEN_LIFETIME_DAYS', 30))
    PORT = int(os.environ.get('PORT', 3000))
    UPLOAD_PATH = os.environ.get('UPLOAD_PATH', './uploads')
    COIN_API_KEY = os.environ.get('COIN_API_KEY')
    COIN_API_URL = os.environ.get('COIN_API_URL', 'https://rest.coinapi.io')
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')


def configure_logging(level='INFO'):
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )


def cors_origins(value):
    """Turn the comma-separated CORS_ORIGINS setting into what Flask-CORS expects."""
    if not value or value.strip() == '*':
        return '*'
    return [o.strip() for o in value.split(',') if o.strip()]
