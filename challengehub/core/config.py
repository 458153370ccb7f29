"""
Application settings

All values come from the environment (optionally a .env file at the
project root). Collection names and list caps are fixed constants.
"""
import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv

ROOT_DIR = Path(__file__).resolve().parents[2]
load_dotenv(ROOT_DIR / ".env")


def _csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings:
    APP_NAME: str = os.getenv("APP_NAME", "ChallengeHub Midnight Run")
    APP_VERSION: str = os.getenv("APP_VERSION", "1.0.0")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    MONGODB_URL: str = os.getenv("MONGODB_URL", "mongodb://localhost:27017")
    DATABASE_NAME: str = os.getenv("DATABASE_NAME", "challengehub")

    # Rwanda time (CAT, UTC+2); every "has the day passed" check uses it
    REFERENCE_TIMEZONE: str = os.getenv("REFERENCE_TIMEZONE", "Africa/Kigali")

    SCHEDULER_ENABLED: bool = os.getenv("SCHEDULER_ENABLED", "true").lower() == "true"
    MIDNIGHT_CRON_HOUR: int = int(os.getenv("MIDNIGHT_CRON_HOUR", "0"))
    MIDNIGHT_CRON_MINUTE: int = int(os.getenv("MIDNIGHT_CRON_MINUTE", "0"))
    MIDNIGHT_RETRY_COUNT: int = int(os.getenv("MIDNIGHT_RETRY_COUNT", "3"))
    # Wait before retry n is MIDNIGHT_RETRY_DELAY_SECONDS * 2**(n-1)
    MIDNIGHT_RETRY_DELAY_SECONDS: float = float(os.getenv("MIDNIGHT_RETRY_DELAY_SECONDS", "30"))
    DISABLED_MIDNIGHT_TASKS: List[str] = _csv(os.getenv("DISABLED_MIDNIGHT_TASKS", ""))

    REMINDER_DAYS_BEFORE: int = int(os.getenv("REMINDER_DAYS_BEFORE", "3"))

    ADMIN_API_TOKEN: str = os.getenv("ADMIN_API_TOKEN", "").strip()


settings = Settings()


# Collections
CHALLENGES = "challenges"
USER_CHALLENGES = "user_challenges"
TEAMS = "teams"
TEAM_MEMBERS = "team_members"
SUBMISSIONS = "submissions"
USERS = "users"
WALLETS = "wallets"
STATS = "stats"
NOTIFICATIONS = "notifications"

# Bounded lists
MAX_WALLET_TRANSACTIONS = 100
MAX_NOTIFICATIONS = 100

PUBLIC_STATS_ID = "public"


def org_stats_id(organization_id: str) -> str:
    """Stat document id for an organization."""
    return f"org_{organization_id}"
