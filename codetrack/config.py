import os
from dotenv import load_dotenv

load_dotenv()

class Config:
    """Application configuration settings"""
    
    # Database settings
    DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///codetrack.db')
    
    # Runtime settings
    DEBUG = os.getenv('DEBUG', 'False').lower() == 'true'
    LOG_DIR = os.getenv('LOG_DIR', 'logs')
    TIMEZONE = os.getenv('TIMEZONE', 'UTC')
    
    # External platform requests
    REQUEST_TIMEOUT = float(os.getenv('REQUEST_TIMEOUT', 20))
    
    # Sync settings
    SYNC_MAX_ATTEMPTS = 5
    SYNC_BACKOFF_SECONDS = 1.0
    SYNC_WORKERS = int(os.getenv('SYNC_WORKERS', 5))
    SUSPENSION_COOLDOWN_HOURS = 24
    
    # Verification default used until an administrator changes it
    VERIFICATION_REQUIRED = os.getenv('VERIFICATION_REQUIRED', 'True').lower() == 'true'
    
    # Scheduler cadences
    SYNC_INTERVAL_HOURS = 168   # Weekly full sync
    RANKING_INTERVAL_HOURS = 24 # Daily ranking recompute
    
    # Manual refresh throttling (per student)
    MANUAL_REFRESH_LIMIT = 1
    MANUAL_REFRESH_WINDOW = int(os.getenv('MANUAL_REFRESH_WINDOW', 300))
    
    @classmethod
    def get_async_database_url(cls, database_url: str = None) -> str:
        """Return the database URL with an async driver"""
        url = database_url or cls.DATABASE_URL
        if url.startswith('sqlite:///'):
            url = url.replace('sqlite:///', 'sqlite+aiosqlite:///')
        return url
    
    @classmethod
    def validate(cls):
        """Validate that required configuration is present"""
        if not cls.DATABASE_URL:
            raise ValueError("DATABASE_URL is required")
        if cls.SYNC_WORKERS <= 0:
            raise ValueError("SYNC_WORKERS must be a positive integer")
        if cls.REQUEST_TIMEOUT <= 0:
            raise ValueError("REQUEST_TIMEOUT must be positive")
