import os
from dotenv import load_dotenv

load_dotenv()

# --- Board client ---
BOARD_API_URL = os.getenv("BOARD_API_URL", "http://localhost:8000/api/v1")
BOARD_REQUEST_TIMEOUT = float(os.getenv("BOARD_REQUEST_TIMEOUT", "10"))
# A retried PUT may reapply the same assignments, never more than once
BOARD_TRANSPORT_RETRIES = max(0, min(1, int(os.getenv("BOARD_TRANSPORT_RETRIES", "1"))))
BOARD_BACKGROUND_REFRESH = os.getenv("BOARD_BACKGROUND_REFRESH", "true").lower() in ("1", "true", "yes")
