"""Configuration settings for the Fileshare Server."""
import os

# Upload limits
MAX_FILE_SIZE = int(os.getenv("FILESHARE_MAX_FILE_SIZE", 10 * 1024 * 1024))  # 10MB
CHUNK_SIZE = 8192

ALLOWED_FILE_TYPES = (
    "image/jpeg",
    "image/png",
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "text/plain",
)

# Share links
SHARE_ID_BYTES = 16  # 128 bits
VERIFY_SHARED_BLOB = os.getenv("FILESHARE_VERIFY_SHARED_BLOB", "false").lower() == "true"

# Directory paths
UPLOAD_DIR = os.getenv("FILESHARE_UPLOAD_DIR", "./public/uploads")
SHARE_FILE = os.getenv("FILESHARE_SHARE_FILE", "./data/shares.json")
PUBLIC_UPLOAD_PATH = "/uploads"
LOG_DIR = os.getenv("FILESHARE_LOG_DIR", "logs")

# Storage failure alerting
FAILURE_THRESHOLD = 5
FAILURE_WINDOW_SECONDS = 60

# Server
HOST = os.getenv("FILESHARE_HOST", "0.0.0.0")
PORT = int(os.getenv("FILESHARE_PORT", 8000))
