# backend/blueledger/routes/streaming.py
"""Server-sent events framing for SnapshotFeed subscriptions."""

import json

from flask import Response, current_app, g, stream_with_context

from ..services import get_services


def sse_events(snapshots):
    for snapshot in snapshots:
        if snapshot is None:
            yield ": keep-alive\n\n"
            continue
        data = json.dumps({"sequence": snapshot.sequence, "items": snapshot.items})
        yield f"event: snapshot\ndata: {data}\n\n"


def stream_collection(collection: str, filters: dict | None = None) -> Response:
    """Stream one collection of the caller's company as text/event-stream."""
    services = get_services()
    company_id = services.guard.require_company(g.caller.company_id)
    heartbeat = current_app.config["SNAPSHOT_STREAM_HEARTBEAT_SECONDS"]
    snapshots = services.feed.subscribe(company_id, collection, heartbeat=heartbeat, filters=filters)
    response = Response(stream_with_context(sse_events(snapshots)), mimetype="text/event-stream")
    response.headers["Cache-Control"] = "no-cache"
    return response
