import os
from dotenv import load_dotenv

load_dotenv()


def _get_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


# Storage
DB_BACKEND = os.getenv("DB_BACKEND", "mongodb").lower()
MONGODB_USERNAME = os.getenv("MONGODB_USERNAME")
MONGODB_PASSWORD = os.getenv("MONGODB_PASSWORD")
CLUSTER_NAME = os.getenv("CLUSTER_NAME")
APP_NAME = os.getenv("APP_NAME", "tournament")
DATABASE_NAME = os.getenv("DATABASE_NAME", "tournament")

if os.getenv("MONGODB_URI"):
    MONGODB_URI = os.getenv("MONGODB_URI")
elif CLUSTER_NAME:
    MONGODB_URI = f"mongodb+srv://{MONGODB_USERNAME}:{MONGODB_PASSWORD}@{CLUSTER_NAME}.mongodb.net/?retryWrites=true&w=majority&appName={APP_NAME}"
else:
    # Transactions need a replica set, even locally
    MONGODB_URI = "mongodb://localhost:27017/?replicaSet=rs0"

# Auth
SECRET_KEY = os.getenv("SECRET_KEY")
TOKEN_EXPIRE_MINUTES = _get_int("TOKEN_EXPIRE_MINUTES", 24 * 60)
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

# Events
DEFAULT_TEAM_SIZE = _get_int("DEFAULT_TEAM_SIZE", 5)
DEFAULT_MAX_PARTICIPANTS = _get_int("DEFAULT_MAX_PARTICIPANTS", 10000)
QUESTION_POINTS = _get_int("QUESTION_POINTS", 10)
TRANSACTION_RETRIES = _get_int("TRANSACTION_RETRIES", 3)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
