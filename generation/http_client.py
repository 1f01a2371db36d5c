import json
import socket
from typing import Any
from urllib import request
from urllib.error import HTTPError, URLError


def post_json(url: str, payload: dict, timeout: float = 120) -> dict[str, Any]:
    """
    POST a JSON payload and decode the JSON response.

    Raises:
        RuntimeError: For HTTP error statuses or a body that is not JSON.
        TimeoutError: If no response arrives within ``timeout`` seconds.
        ConnectionError: If the server cannot be reached.
    """
    data = json.dumps(payload, ensure_ascii=False).encode("utf-8")
    req = request.Request(
        url,
        data=data,
        headers={"Content-Type": "application/json"},
        method="POST",
    )
    try:
        with request.urlopen(req, timeout=timeout) as resp:
            raw = resp.read().decode("utf-8")
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise RuntimeError(f"Invalid JSON from {url}: {exc}") from exc
    except HTTPError as exc:
        body = exc.read().decode("utf-8") if exc.fp else ""
        raise RuntimeError(f"HTTP {exc.code} calling {url}: {body}") from exc
    except URLError as exc:
        if isinstance(exc.reason, socket.timeout):
            raise TimeoutError(f"Timed out after {timeout}s calling {url}") from exc
        raise ConnectionError(f"Cannot reach {url}: {exc.reason}") from exc
    except socket.timeout as exc:
        raise TimeoutError(f"Timed out after {timeout}s calling {url}") from exc
