import os

import dotenv

from resumable_sse import StreamOptions, subscribe

dotenv.load_dotenv()

url = os.getenv("RESUMABLE_SSE_TEST_URL", "http://localhost:8000/sse/stream")

with subscribe(url, options=StreamOptions(retry_ms=2000)) as sub:
    for i, event in enumerate(sub):
        print(f"[{event.id or '-'}] {event.type or 'message'}: {event.text}")
        if i >= 20:
            break
