import os

SECRET_KEY = os.getenv("SECRET_KEY", "please-set-SECRET_KEY")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "payroll_engine"),
}

DEBUG = False
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))

PAYROLL_BATCH_WORKERS = int(os.getenv("PAYROLL_BATCH_WORKERS", "8"))
SYNC_MAX_ATTEMPTS = int(os.getenv("SYNC_MAX_ATTEMPTS", "5"))
SYNC_BASE_DELAY_SECONDS = float(os.getenv("SYNC_BASE_DELAY_SECONDS", "1"))
SYNC_MAX_DELAY_SECONDS = float(os.getenv("SYNC_MAX_DELAY_SECONDS", "60"))
