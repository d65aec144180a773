import os
import sys

import requests


BASE = os.environ.get("E2E_BASE", "http://127.0.0.1:8000")
TOKEN = os.environ.get("APP_UPLOAD_TOKEN", "")


def main() -> int:
    s = requests.Session()
    # 1) health
    r = s.get(f"{BASE}/healthz", timeout=5)
    print("healthz:", r.status_code, r.text)

    if not TOKEN:
        print("APP_UPLOAD_TOKEN not set, skipping write calls")
        return 1
    headers = {"Authorization": f"Bearer {TOKEN}"}

    # 2) batch update
    decks = [
        {"deck": "daily", "ids": [f"daily-{i}" for i in range(10)]},
        {"deck": "love", "ids": ["l1", "l2", "l2", "l3"]},
    ]
    r = s.post(f"{BASE}/updateCacheCardId", json=decks, headers=headers, timeout=10)
    print("update:", r.status_code, r.text)

    # 3) ungated draw
    r = s.get(f"{BASE}/getCardId", params={"deck": "love", "n": 2}, timeout=10)
    print("draw:", r.status_code, r.text)

    # 4) gated draw twice, second one should report used
    for attempt in (1, 2):
        r = s.get(f"{BASE}/dailyDraw", params={"userId": "e2e-user"}, timeout=10)
        print(f"daily_draw#{attempt}:", r.status_code, r.text)

    r = s.get(f"{BASE}/quota/today", params={"userId": "e2e-user"}, timeout=10)
    print("quota_today:", r.status_code, r.text)
    return 0


if __name__ == "__main__":
    sys.exit(main())
