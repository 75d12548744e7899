#!/usr/bin/env python3
"""
Connection Check Script

Run this to verify the databases and configured integrations are reachable.
Usage: python scripts/check_connections.py
"""

from frog_portal.core.config import get_settings
from frog_portal.db.mongodb import test_mongo_connection
from frog_portal.db.postgres import test_postgres_connection
from frog_portal.services.advisor_service import get_advisor_client
from frog_portal.services.cms_client import CMSError, get_cms_client
from frog_portal.services.content_snare_client import ContentSnareError, get_content_snare_client


def report(name: str, ok: bool) -> None:
    print(f"    {name}: {'CONNECTED' if ok else 'FAILED'}")


def main():
    settings = get_settings()
    print("=" * 50)
    print("FROG MEMBERS PORTAL - CONNECTION CHECK")
    print("=" * 50)

    print("\n[1] Relational database...")
    print(f"    Host: {settings.postgres_host}:{settings.postgres_port}/{settings.postgres_db}")
    report("Database", test_postgres_connection())

    print("\n[2] MongoDB...")
    print(f"    URI: {settings.mongodb_uri}")
    print(f"    Database: {settings.mongodb_db}")
    report("MongoDB", test_mongo_connection())

    print("\n[3] Content Snare...")
    if settings.content_snare_client_id:
        try:
            templates = get_content_snare_client().list_templates()
            report("Content Snare", True)
            print(f"    Templates: {len(templates)}")
        except ContentSnareError as e:
            report("Content Snare", False)
            print(f"    {e}")
    else:
        print("    Content Snare: not configured (skipped)")

    print("\n[4] microCMS...")
    if settings.microcms_api_key:
        try:
            get_cms_client().list_posts(limit=1, force_refresh=True)
            report("microCMS", True)
        except CMSError as e:
            report("microCMS", False)
            print(f"    {e}")
    else:
        print("    microCMS: not configured (skipped)")

    print("\n[5] Advisor chat API...")
    if settings.openai_api_key:
        print(f"    Base URL: {settings.openai_base_url}")
        report("Advisor", get_advisor_client().test_connection())
    else:
        print("    Advisor: API key not configured (skipped)")

    print("\n" + "=" * 50)
    print("Connection check complete!")
    print("=" * 50)


if __name__ == "__main__":
    main()
