import os
from dotenv import load_dotenv

load_dotenv()

DATABASE_PATH = os.getenv("DATABASE_PATH")
DATABASE_URL = f"sqlite:///{DATABASE_PATH}" if DATABASE_PATH else os.getenv("DATABASE_URL", "sqlite:///jinro.db")
MIGRATIONS_PATH = os.getenv("MIGRATIONS_PATH", os.path.join(os.getcwd(), "migrations"))

TIMEOUT_POLL_SECONDS = float(os.getenv("TIMEOUT_POLL_SECONDS", "5"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "3000"))
APP_VERSION = os.getenv("APP_VERSION", "1.0.0")
