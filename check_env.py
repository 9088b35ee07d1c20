#!/usr/bin/env python3
"""Helper script to check and create a .env file for the optimizer configuration."""

from pathlib import Path
import os
import sys

ENV_TEMPLATE = """# TomTom (required): search, routing and traffic APIs
TRANSIT_TOMTOM_API_KEY=your-tomtom-api-key-here
# TRANSIT_GEOCODE_COUNTRY_SET=MA

# Redis cache (optional; an in-process cache is used when unset)
# TRANSIT_REDIS_URL=redis://localhost:6379/0

# API Configuration
TRANSIT_API_PREFIX=/api
# TRANSIT_FRONTEND_ALLOWED_ORIGINS - JSON array or comma-separated list

# Engine
# TRANSIT_MAX_WALKING_DISTANCE_METERS=800
# TRANSIT_RADIUS_ESCALATION_STEPS=1000,2000
# TRANSIT_COVERAGE_GAP_POLICY=fail_fast
"""


def _mask(value: str) -> str:
    if len(value) > 12:
        return value[:6] + "..." + value[-4:]
    return "***"


def main():
    project_root = Path(__file__).parent
    env_file = project_root / ".env"

    print("=" * 60)
    print("Transit Optimizer Environment Checker")
    print("=" * 60)
    print()

    if not env_file.exists():
        print(f"❌ .env file NOT found at: {env_file}")
        with open(env_file, "w", encoding="utf-8") as f:
            f.write(ENV_TEMPLATE)
        print(f"✅ Created template .env file at: {env_file}")
        print("⚠️  Please edit .env and add your TomTom API key!")
        return

    print(f"✅ Found .env file at: {env_file}")
    print()

    sys.path.insert(0, str(project_root / "src"))
    try:
        from transit_optimizer.config import Settings

        settings = Settings()
    except Exception as e:
        print(f"❌ Error loading config: {e}")
        print("Make sure you're running this from the project root directory")
        return

    if settings.tomtom_api_key:
        print(f"✅ TomTom API key: {_mask(settings.tomtom_api_key)}")
    else:
        print("❌ TRANSIT_TOMTOM_API_KEY is not set")

    if settings.redis_url:
        from transit_optimizer.db.redis_client import get_redis_client

        client = get_redis_client()
        print(f"{'✅' if client else '❌'} Redis at {settings.redis_url}: {'reachable' if client else 'unreachable'}")
    else:
        print("ℹ️  TRANSIT_REDIS_URL not set, the in-process cache will be used")

    print(f"ℹ️  Coverage gap policy: {settings.coverage_gap_policy}")
    print(f"ℹ️  Discovery radii: {list(settings.radius_escalation_steps)}")


if __name__ == "__main__":
    main()
