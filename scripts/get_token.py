#!/usr/bin/env python3
"""
OAuth Token Setup

Run this script once per user and provider to obtain tokens and hand them
to the voice assistant's credential store.

Usage:
    python scripts/get_token.py google --user-id 42
    python scripts/get_token.py amazon --user-id 42 --seed-url http://localhost:8000

Follow the prompts:
1. Click the generated URL
2. Authorize with Google or Amazon
3. Copy the 'code' parameter from the failed redirect URL
4. Paste it into the terminal
5. The seed payload is printed, or POSTed to /auth/credentials with --seed-url
"""

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path

# Add parent directory to path so we can import from voice_assistant
sys.path.insert(0, str(Path(__file__).parent.parent))

import httpx
from dotenv import load_dotenv

# Load environment variables before settings are read
load_dotenv()

from voice_assistant.auth import AmazonOAuth, GoogleOAuth


async def main():
    parser = argparse.ArgumentParser(description="Obtain OAuth tokens for the voice assistant")
    parser.add_argument("provider", choices=["google", "amazon"])
    parser.add_argument("--user-id", required=True)
    parser.add_argument("--seed-url", help="Base URL of a running voice assistant to seed")
    args = parser.parse_args()

    oauth = GoogleOAuth() if args.provider == "google" else AmazonOAuth()
    seed_provider = "google" if args.provider == "google" else "amazon_music"

    print("=" * 60)
    print(f"{args.provider.capitalize()} OAuth Token Setup")
    print("=" * 60)
    print()
    print("Requested scopes:")
    for scope in oauth.scopes:
        print(f"  - {scope}")
    print()

    auth_url = oauth.get_auth_url(state="token-setup")

    print("Step 1: Visit this URL in your browser:")
    print()
    print(auth_url)
    print()
    print(f"Step 2: After authorizing you will be redirected to {oauth.redirect_uri}")
    print("The page may fail to load (that's expected).")
    print()
    print("Step 3: Paste the ENTIRE URL from the address bar, or just the 'code' value:")
    print()

    user_input = input("Paste here: ").strip()

    # Extract code if they pasted the full URL
    if "code=" in user_input:
        code = user_input.split("code=")[1].split("&")[0]
    else:
        code = user_input

    print()
    print("Exchanging code for tokens...")

    try:
        token_data = await oauth.exchange_code(code)
    except httpx.HTTPError as e:
        print()
        print("ERROR:", str(e))
        print()
        print("Make sure you:")
        print("  1. Copied the entire code value")
        print("  2. Have the client id and secret for this provider in .env")
        print("  3. Registered the same redirect URI with the provider")
        sys.exit(1)

    seed = {
        "user_id": args.user_id,
        "provider": seed_provider,
        "access_token": token_data.access_token,
        "refresh_token": token_data.refresh_token,
        "expires_at": token_data.expires_at,
        "scope": token_data.scope,
    }

    if not args.seed_url:
        print()
        print("Seed payload for POST /auth/credentials:")
        print()
        print(json.dumps(seed, indent=2))
        return

    headers = {}
    if os.getenv("API_KEY"):
        headers["X-API-Key"] = os.environ["API_KEY"]

    async with httpx.AsyncClient() as client:
        response = await client.post(
            f"{args.seed_url.rstrip('/')}/auth/credentials",
            json=seed,
            headers=headers,
        )

    if response.status_code != 201:
        print(f"ERROR: seeding failed ({response.status_code}): {response.text}")
        sys.exit(1)

    print()
    print(f"Stored credentials for user {args.user_id}: {', '.join(response.json()['providers'])}")


if __name__ == "__main__":
    asyncio.run(main())
