"""
Learnify Configuration
Database, auth, assistant and concurrency settings
"""

import os

# MongoDB
MONGO_URL = os.getenv("MONGO_URL", "mongodb://localhost:27017")
MONGO_DB_NAME = os.getenv("MONGO_DB_NAME", "learnify_db")

# Auth (tokens are issued elsewhere, we only validate them)
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "learnify-dev-secret")
JWT_ALGORITHM = "HS256"
JWT_EXPIRE_DAYS = int(os.getenv("JWT_EXPIRE_DAYS", "7"))
AUTH_HEADER = "x-auth-token"

# Frontend origin for CORS
CLIENT_URL = os.getenv("CLIENT_URL", "http://localhost:3000")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Chat assistant
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")
CHAT_LLM_ENABLED = os.getenv("CHAT_LLM_ENABLED", "false").lower() == "true"
CHAT_MIN_DELAY_SECONDS = float(os.getenv("CHAT_MIN_DELAY_SECONDS", "0.2"))
CHAT_MAX_DELAY_SECONDS = float(os.getenv("CHAT_MAX_DELAY_SECONDS", "0.8"))

# Ordering lease on a course document
ORDERING_LOCK_TTL_SECONDS = 10
ORDERING_LOCK_RETRIES = 20
ORDERING_LOCK_RETRY_DELAY = 0.05

# Compare-and-swap retries for enrollment progress and votes
CAS_MAX_RETRIES = 5
