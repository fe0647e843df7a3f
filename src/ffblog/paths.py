# src/ffblog/paths.py
import os

# Base directory pointing to the ffblog package
BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "."))

# Project root (two levels above the package in the src layout)
PROJECT_DIR = os.path.abspath(os.path.join(BASE_DIR, "..", ".."))

# Jinja templates used by the Flask app
TEMPLATES_DIR = os.path.join(BASE_DIR, "app", "templates")

# Migration files applied by the Migrator
MIGRATIONS_DIR = os.path.join(BASE_DIR, "migrations", "versions")

# Stub files used by the make:* generators
STUBS_DIR = os.path.join(BASE_DIR, "generators", "stubs")

# Writable runtime storage (cache files, logs)
STORAGE_DIR = os.environ.get("FF_STORAGE_DIR", os.path.join(PROJECT_DIR, "storage"))
CACHE_DIR = os.path.join(STORAGE_DIR, "cache")
LOG_DIR = os.path.join(STORAGE_DIR, "logs")
