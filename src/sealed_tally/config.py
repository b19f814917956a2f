import os

# Settings are read from the environment once, at import time.

SERVER_URL = os.environ.get("SEALED_TALLY_URL", "http://127.0.0.1:5000")
SERVER_HOST = os.environ.get("SEALED_TALLY_HOST", "127.0.0.1")
SERVER_PORT = int(os.environ.get("SEALED_TALLY_PORT", 5000))

LOG_LEVEL = os.environ.get("SEALED_TALLY_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

HTTP_TIMEOUT = float(os.environ.get("SEALED_TALLY_HTTP_TIMEOUT", 5))
