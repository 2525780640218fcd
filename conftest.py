import os

# Load .env.test for tests when present (e.g. TEST_DATABASE_URL for Postgres)
from dotenv import load_dotenv

env_test_path = os.path.join(os.path.dirname(__file__), ".env.test")
if os.path.exists(env_test_path):
    load_dotenv(env_test_path, override=True)

# Must be in place before any module builds the engine, limiter or settings
os.environ["ENVIRONMENT"] = "test"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["DATABASE_URL"] = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite://")
os.environ["STRIPE_SECRET_KEY"] = "sk_test_marketplace"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_marketplace"

from libs.common.config import get_settings  # noqa: E402

# Clear cached settings to reload with the test env vars
get_settings.cache_clear()
