from flask import session
from flask_socketio import SocketIO, emit

# Initialize SocketIO without app binding
# Will be bound to app in create_app() function
socketio: SocketIO = SocketIO(
    cors_allowed_origins="*",
    async_mode='threading'
)


def broadcast_invalidation(*resources: str) -> None:
    """Tell connected clients which cached resources are now stale.

    Args:
        *resources: Resource names such as 'books', 'borrows', 'users'.
    """
    socketio.emit('invalidate', {'resources': list(resources)})


@socketio.on('connect')
def handle_connect():
    """Acknowledge a real-time client so it can start listening for invalidations."""
    emit('connected', {'userId': session.get('user_id')})
