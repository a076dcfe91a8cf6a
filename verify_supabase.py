import asyncio
import os
from datetime import datetime, timedelta, timezone

import requests
from dotenv import load_dotenv

# Load .env before the settings object is built
load_dotenv()

from vapi_calendar.core.logger import setup_logging, logger
from vapi_calendar.services.db_service import DBService

REQUIRED_VARS = ["VAPI_SECRET", "SUPABASE_URL", "SUPABASE_KEY", "CAL_API_KEY"]


def check_env() -> bool:
    print("\n1. Checking environment variables:")
    ok = True
    for name in REQUIRED_VARS:
        if os.getenv(name):
            print(f"✓ {name} is set")
        else:
            print(f"✗ Missing {name}")
            ok = False
    return ok


async def check_availability_rpc() -> bool:
    print("\n2. Checking fn_check_availability RPC:")
    start = datetime.now(timezone.utc) + timedelta(days=1)
    end = start + timedelta(minutes=15)
    try:
        rows = await DBService().check_availability(start.isoformat(), end.isoformat(), 15)
        print(f"✓ RPC answered with {len(rows)} slot(s)")
        return True
    except Exception as e:
        print(f"✗ RPC failed: {e}")
        return False


def check_cal_api() -> bool:
    print("\n3. Checking booking API reachability:")
    base_url = os.getenv("CAL_API_BASE_URL", "https://api.cal.com/v1")
    try:
        response = requests.get(base_url, timeout=10)
        print(f"✓ {base_url} answered with HTTP {response.status_code}")
        return True
    except requests.RequestException as e:
        print(f"✗ Network connectivity issue: {e}")
        return False


def main() -> int:
    setup_logging(error_log_file="")
    logger.info("🩺 Running backend diagnostics")

    results = [check_env(), asyncio.run(check_availability_rpc()), check_cal_api()]
    print("\nAll checks passed." if all(results) else "\nSome checks failed.")
    return 0 if all(results) else 1


if __name__ == "__main__":
    raise SystemExit(main())
