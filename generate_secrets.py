#!/usr/bin/env python3
"""
Generate secure secrets for the F1 Predictions application
Run this script to generate the SECRET_KEY used to sign sessions and auth tokens
"""

import secrets


def generate_secrets():
    """Generate secure random keys for the application"""
    print("🔐 Generating secure secrets for F1 Predictions...")
    print("=" * 50)

    secret_key = secrets.token_urlsafe(32)

    print(f"SECRET_KEY={secret_key}")

    print("=" * 50)
    print("📝 Copy this value to your .env file")
    print("⚠️  Changing it invalidates every issued auth token!")
    print("⚠️  Keep these secrets secure and never commit them to version control!")


if __name__ == "__main__":
    generate_secrets()
