#!/usr/bin/env python3
"""Send a signed Shopify order webhook to a running instance."""

import base64
import hashlib
import hmac
import json
import os
import time

import httpx
from dotenv import load_dotenv

load_dotenv()

SHOPIFY_API_SECRET = os.getenv("SHOPIFY_API_SECRET", "")
TOPIC = os.getenv("TEST_TOPIC", "orders/paid")
WEBHOOK_URL = f"http://localhost:8000/webhooks/{TOPIC}"

# Load test data from environment or use placeholders
SHOP_DOMAIN = os.getenv("TEST_SHOP_DOMAIN", "example.myshopify.com")
ORDER_ID = int(os.getenv("TEST_ORDER_ID", str(int(time.time()))))

payload = {
    "id": ORDER_ID,
    "order_number": 1001,
    "email": "buyer@example.com",
    "total_price": "150.00",
    "financial_status": "paid",
    "gateway": "Cash on Delivery (COD)",
    "billing_address": {
        "first_name": "Test",
        "last_name": "Customer",
        "address1": "Sheikh Zayed Road",
        "city": "Dubai",
        "province": "Dubai",
        "province_code": "AE-DU",
        "country_code": "AE",
        "phone": "+971500000000",
    },
    "line_items": [
        {"name": "T-Shirt", "variant_title": "Red / XL", "quantity": 1},
    ],
}

# Generate signature (base64 HMAC-SHA256 over the raw body)
body = json.dumps(payload).encode("utf-8")
signature = base64.b64encode(
    hmac.new(SHOPIFY_API_SECRET.encode("utf-8"), body, hashlib.sha256).digest()
).decode("ascii")

print("=" * 80)
print("SENDING TEST WEBHOOK")
print("=" * 80)
print(f"\nTopic: {TOPIC}")
print(f"Shop: {SHOP_DOMAIN}")
print(f"Order ID: {ORDER_ID}")
print(f"\nSignature: {signature[:16]}...")

try:
    response = httpx.post(
        WEBHOOK_URL,
        content=body,
        headers={
            "Content-Type": "application/json",
            "X-Shopify-Hmac-Sha256": signature,
            "X-Shopify-Shop-Domain": SHOP_DOMAIN,
            "X-Shopify-Topic": TOPIC,
        },
        timeout=10,
    )

    print(f"\n{'=' * 80}")
    print(f"RESPONSE: {response.status_code}")
    print(f"{'=' * 80}")
    if response.text:
        print(f"Body: {response.text}")
    else:
        print("Body: (empty - as expected)")

    if response.status_code == 200:
        print("\nWebhook accepted. Check the logs and GET /api/orders for the shipment.")
    else:
        print("\nWebhook rejected")

except httpx.HTTPError as e:
    print(f"\nError: {e}")
