#this creates a redis key to store response data for a given reconstruction payload (in reconstruction routes)
import hashlib
import json


def generate_payload_cache_key(payload: dict, units: str = "metric") -> str:
    """
    Generate a deterministic Redis key for a vision payload.

    Key is sha256 of the canonical JSON payload plus the requested unit system.
    """
    payload_json = json.dumps(payload or {}, sort_keys=True).encode("utf-8")
    digest = hashlib.sha256(payload_json + b"|units|" + units.encode("utf-8")).hexdigest()
    return f"fittwin:reconstruct:{digest}"
