import os
from dotenv import load_dotenv

load_dotenv()

XENDIT_SECRET_KEY = os.getenv("XENDIT_SECRET_KEY", "")
XENDIT_API_URL = os.getenv("XENDIT_API_URL", "https://api.xendit.co").rstrip("/")

GATEWAY_TIMEOUT_SECONDS = float(os.getenv("GATEWAY_TIMEOUT_SECONDS", "10"))

INVOICE_DURATION_SECONDS = int(os.getenv("INVOICE_DURATION_SECONDS", "86400")) # 24 hours
INVOICE_CURRENCY = os.getenv("INVOICE_CURRENCY", "IDR")

# Where the hosted invoice page sends the customer back to
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:3000").rstrip("/")

# Optional: when set, webhook deliveries must carry a matching x-callback-token header
GATEWAY_WEBHOOK_TOKEN = os.getenv("GATEWAY_WEBHOOK_TOKEN", "")
