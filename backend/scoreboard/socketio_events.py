from flask_socketio import join_room, leave_room, emit
from scoreboard import socketio


def session_room(session_id: str) -> str:
    return f"session:{session_id}"


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_join_session(data):
    session_id = (data or {}).get('sessionId')
    if not session_id:
        emit('error', {'message': 'sessionId is required'})
        return
    room = session_room(session_id)
    join_room(room)
    emit('joined', {'room': room})


def handle_leave_session(data):
    session_id = (data or {}).get('sessionId')
    if not session_id:
        emit('error', {'message': 'sessionId is required'})
        return
    room = session_room(session_id)
    leave_room(room)
    emit('left', {'room': room})


def handle_ping(data):
    emit('pong', data or {})


# ---- Outbound signals used by live sessions ----

def make_navigator(app, session_id: str):
    """Navigator that asks the clients in the session room to change screen."""
    def navigate(screen, params):
        socketio.emit(
            'navigate',
            {'sessionId': session_id, 'screen': screen, 'params': params},
            to=session_room(session_id),
            namespace='/ws',
        )
        app.logger.info(f"[navigate] session={session_id} screen={screen}")
    return navigate


def make_defer(app):
    """Run a callback after the current request has been handled.

    Inline in TESTING mode for determinism.
    """
    if app.config.get('TESTING'):
        return lambda fn: fn()

    delay = float(app.config.get('NAVIGATE_DELAY_SEC', 0.1))

    def defer(fn):
        def _runner():
            if delay > 0:
                socketio.sleep(delay)
            fn()
        socketio.start_background_task(_runner)
    return defer


def emit_state_update(controller) -> None:
    socketio.emit(
        'state_update',
        {'sessionId': controller.session_id, 'status': controller.status},
        to=session_room(controller.session_id),
        namespace='/ws',
    )


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    socketio.on_event('connect', handle_connect, namespace='/ws')
    socketio.on_event('join_session', handle_join_session, namespace='/ws')
    socketio.on_event('leave_session', handle_leave_session, namespace='/ws')
    socketio.on_event('ping', handle_ping, namespace='/ws')

    if testing:
        socketio.on_event('connect', handle_connect, namespace='/')
        socketio.on_event('join_session', handle_join_session, namespace='/')
        socketio.on_event('leave_session', handle_leave_session, namespace='/')
        socketio.on_event('ping', handle_ping, namespace='/')
