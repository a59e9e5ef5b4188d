import time
import uuid

from flask import current_app, g, request


def register_request_id_middleware(app):
    @app.before_request
    def add_request_id():
        rid = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        g.request_id = rid
        g.start_time = time.time()

    @app.after_request
    def add_response_header(response):
        response.headers["X-Request-ID"] = getattr(g, "request_id", "")
        start = getattr(g, "start_time", None)
        current_app.logger.debug({
            "event": "request_completed",
            "request_id": getattr(g, "request_id", None),
            "endpoint": request.path,
            "method": request.method,
            "status_code": response.status_code,
            "latency_ms": round((time.time() - start) * 1000.0, 2) if start else None,
        })
        return response
