import logging
import os

import dotenv

from resumable_sse import SSEDecoder
from resumable_sse._client import SSEHttpClient

dotenv.load_dotenv()
logging.basicConfig(level=logging.DEBUG)

url = os.environ["RESUMABLE_SSE_TEST_URL"]
http = SSEHttpClient()
decoder = SSEDecoder(url)

response = http.open_stream(http.build_request(url))
try:
    http.check_response(url, response)
    for i, event in enumerate(decoder.iter_events(response.iter_bytes())):
        print("i=", i, "repr=", repr(event))
        print("state=", decoder.state)
        if i >= 30:
            break
finally:
    response.close()
    http.close()
