import json
import os

import requests

BASE_URL = os.getenv("TRAVEL_COPILOT_URL", "http://127.0.0.1:8000")

# --- chat turn payload ---
payload = {
    "content": "Plan a trip from Delhi to Jaipur this weekend",
    "language": "en",
    "travelMode": "train",
    "tradeoffPreference": 60,
    "customerIds": [],
}


def run_smoke():
    url = f"{BASE_URL}/api/chat"
    headers = {"Content-Type": "application/json"}

    print(f"➡️ Sending POST {url}")
    print(json.dumps(payload, indent=2))

    resp = requests.post(url, headers=headers, json=payload, timeout=60)

    print(f"\n⬅️ Status: {resp.status_code}")
    try:
        data = resp.json()
    except ValueError:
        print(resp.text)
        return
    print(json.dumps(data, indent=2, ensure_ascii=False))

    message = data.get("message") or {}
    render = requests.post(
        f"{BASE_URL}/api/render",
        headers=headers,
        json={"content": message.get("content", ""), "travelMode": payload["travelMode"]},
        timeout=30,
    )
    print(f"\n⬅️ Rendered {payload['travelMode']} view:\n")
    print(render.json().get("content", ""))


if __name__ == "__main__":
    run_smoke()
