#!/usr/bin/env python3
"""
Database Setup Script for CivicReport
Run this to generate SQL schema for Supabase
"""

from database import create_tables_sql

def main():
    print("=" * 80)
    print("CivicReport Database Setup")
    print("=" * 80)
    print()
    print("Copy the SQL below and paste it into your Supabase SQL Editor:")
    print()
    print("=" * 80)
    print()
    print(create_tables_sql())
    print()
    print("=" * 80)
    print()
    print("After running the SQL:")
    print("1. Set STORAGE_BACKEND=supabase, SUPABASE_URL and SUPABASE_SECRET in .env")
    print("2. Set ADMIN_USERNAME, ADMIN_EMAIL and ADMIN_PASSWORD to create the first admin")
    print("3. Optionally set SENDGRID_API_KEY to enable status emails")
    print()
    print("This will create the users, departments, categories, reports and notifications tables.")
    print("=" * 80)

if __name__ == "__main__":
    main()
