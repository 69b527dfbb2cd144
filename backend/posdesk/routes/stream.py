# Overview: Server-sent event streams of per-user collection snapshots.

"""
Live collection streams.

GET /api/stream/<products|sales|invoices> answers with text/event-stream.
The first event is the current snapshot; a new `snapshot` event follows
every committed write to that collection. Comment lines are sent as
keepalives while nothing changes. The subscription is dropped when the
client disconnects and the response is closed.

EventSource cannot set headers, so the session token may also be passed as
the `access_token` query parameter.
"""

import json

from flask import Blueprint, Response, current_app, g, jsonify, stream_with_context

from ..decorators import require_auth_allow_query_token
from ..extensions import db
from ..services.change_feed import (
    COLLECTIONS,
    ChangeFeed,
    QueueSubscriber,
    get_change_feed,
)


stream_bp = Blueprint("stream", __name__, url_prefix="/api/stream")


def format_event(collection: str, snapshot: list[dict]) -> str:
    payload = json.dumps({"collection": collection, "items": snapshot})
    return f"event: snapshot\ndata: {payload}\n\n"


def event_stream(feed: ChangeFeed, collection: str, user_id: int, keepalive: float):
    """
    Yield SSE frames until the consumer stops iterating.

    Closing the generator (client gone) runs the finally block, which
    releases the subscription.

    The stream gives its database session back right after the initial
    snapshot; later snapshots are loaded by the writer that published them.
    """
    subscriber = QueueSubscriber()
    subscription = feed.subscribe(collection, user_id, subscriber)
    try:
        initial = format_event(collection, feed.snapshot(collection, user_id))
        db.session.remove()
        yield initial
        while True:
            snapshot = subscriber.get(timeout=keepalive)
            if snapshot is None:
                yield ": keepalive\n\n"
            else:
                yield format_event(collection, snapshot)
    finally:
        subscription.unsubscribe()


@stream_bp.get("/<string:collection>")
@require_auth_allow_query_token
def stream_route(collection: str):
    if collection not in COLLECTIONS:
        return jsonify({"error": f"Unknown collection: {collection}"}), 404

    stream = event_stream(
        get_change_feed(),
        collection,
        g.current_user.id,
        current_app.config["STREAM_KEEPALIVE_SECONDS"],
    )
    return Response(
        stream_with_context(stream),
        mimetype="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
