from flask import Blueprint, jsonify, request, current_app
from concurrent.futures import TimeoutError as FutureTimeoutError
import time
from typing import Dict

from scoreboard import PERSISTENCE_EXTENSION
from scoreboard.services.session import (
    ACTIVE,
    COMPLETED,
    COMPLETED_KEY,
    IN_PROGRESS_KEY,
    PersistenceCoordinator,
    SessionAlreadyCompleted,
    SessionController,
)
from scoreboard.socketio_events import emit_state_update, make_defer, make_navigator


sessions = Blueprint('sessions', __name__)

# Live sessions for this process, keyed by session id
_live_sessions: Dict[str, SessionController] = {}

_collections = {
    'in-progress': IN_PROGRESS_KEY,
    'completed': COMPLETED_KEY,
}
_navigable_screens = ('home', 'setup')


def _coordinator() -> PersistenceCoordinator:
    return current_app.extensions[PERSISTENCE_EXTENSION]


def _validate_setup(data: dict):
    game_name = data.get('gameName')
    players = data.get('players')
    if not isinstance(game_name, str) or not game_name.strip():
        return 'gameName is required'
    try:
        min_players = int(current_app.config.get('MIN_PLAYERS', 2))
        max_players = int(current_app.config.get('MAX_PLAYERS', 4))
    except Exception:
        min_players, max_players = 2, 4
    if not isinstance(players, list) or not all(isinstance(p, str) and p.strip() for p in players):
        return 'players must be a list of names'
    if not (min_players <= len(players) <= max_players):
        return f'Between {min_players} and {max_players} players are required'
    if len(set(players)) != len(players):
        return 'Player names must be distinct'
    return None


def _get_live(session_id: str):
    return _live_sessions.get(session_id)


def _not_found():
    return jsonify({'error': 'Session not found'}), 404


def _release_when_completed(controller: SessionController) -> None:
    if controller.status == COMPLETED and _live_sessions.pop(controller.session_id, None) is not None:
        current_app.logger.info(f"[session-released] session={controller.session_id} winner={controller.winner}")


def _expire_idle_sessions() -> None:
    try:
        ttl = float(current_app.config.get('SESSION_IDLE_TTL_SEC', 3600))
    except Exception:
        ttl = 3600.0
    now = time.monotonic()
    for session_id, controller in list(_live_sessions.items()):
        if now - controller.touched_at <= ttl:
            continue
        # Queues the save without waiting on it
        controller.before_close()
        _live_sessions.pop(session_id, None)
        current_app.logger.info(f"[session-expired] session={session_id} idle_for={now - controller.touched_at:.0f}s")


@sessions.route('/sessions', methods=['POST'])
def start_session():
    data = request.get_json(silent=True) or {}
    error = _validate_setup(data)
    if error:
        return jsonify({'error': error}), 400

    _expire_idle_sessions()

    # Re-entering a game that is already open keeps the live instance
    existing = _get_live(data.get('sessionId') or '')
    if existing is not None:
        return jsonify(existing.to_dict())

    app = current_app._get_current_object()
    try:
        controller = SessionController.start(
            data,
            _coordinator(),
            defer=make_defer(app),
            logger=app.logger,
            date_format=app.config.get('DATE_FORMAT', '%m/%d/%Y'),
            time_format=app.config.get('TIME_FORMAT', '%I:%M:%S %p'),
        )
    except SessionAlreadyCompleted as exc:
        app.logger.warning(f"[resume-completed] {exc}")
        return jsonify({'error': 'Game is already completed'}), 409
    controller.navigator = make_navigator(app, controller.session_id)
    controller.subscribe(emit_state_update)
    controller.subscribe(_release_when_completed)
    _live_sessions[controller.session_id] = controller
    app.logger.info(
        f"[session-start] session={controller.session_id} players={len(controller.players)} "
        f"resumed={'grid' in data or 'moveLog' in data or 'history' in data}"
    )
    return jsonify(controller.to_dict()), 201


@sessions.route('/sessions/<string:session_id>', methods=['GET'])
def get_session(session_id):
    controller = _get_live(session_id)
    if controller is None:
        return _not_found()
    return jsonify(controller.to_dict())


@sessions.route('/sessions/<string:session_id>/tap', methods=['POST'])
def tap_cell(session_id):
    controller = _get_live(session_id)
    if controller is None:
        return _not_found()
    data = request.get_json(silent=True) or {}
    row = data.get('row')
    col = data.get('col')
    if not isinstance(row, int) or not isinstance(col, int) or isinstance(row, bool) or isinstance(col, bool):
        return jsonify({'error': 'row and col must be integers'}), 400
    try:
        applied = controller.tap(row, col)
    except IndexError as exc:
        return jsonify({'error': str(exc)}), 400
    if not applied:
        return jsonify({'error': 'Game is already completed', **controller.to_dict()}), 409
    return jsonify(controller.to_dict())


@sessions.route('/sessions/<string:session_id>/undo', methods=['POST'])
def undo_move(session_id):
    controller = _get_live(session_id)
    if controller is None:
        return _not_found()
    if controller.status != ACTIVE:
        return jsonify({'error': 'Game is already completed', **controller.to_dict()}), 409
    undone = controller.undo()
    return jsonify({'undone': undone, **controller.to_dict()})


@sessions.route('/sessions/<string:session_id>/reset', methods=['POST'])
def reset_board(session_id):
    controller = _get_live(session_id)
    if controller is None:
        return _not_found()
    data = request.get_json(silent=True) or {}
    if data.get('confirmed') is not True:
        return jsonify({'error': 'Reset must be confirmed'}), 400
    if not controller.reset():
        return jsonify({'error': 'Game is already completed', **controller.to_dict()}), 409
    return jsonify(controller.to_dict())


@sessions.route('/sessions/<string:session_id>/close', methods=['POST'])
def close_session(session_id):
    controller = _get_live(session_id)
    if controller is None:
        return _not_found()
    data = request.get_json(silent=True) or {}
    screen = data.get('screen')
    if screen is not None and screen not in _navigable_screens:
        return jsonify({'error': f'screen must be one of {", ".join(_navigable_screens)}'}), 400

    try:
        timeout = float(current_app.config.get('CLOSE_SAVE_TIMEOUT_SEC', 5))
    except Exception:
        timeout = 5.0
    # Leaving is not complete until the last save has settled
    try:
        saved = controller.before_close().result(timeout=timeout)
    except FutureTimeoutError:
        current_app.logger.warning(f"[close-timeout] session={session_id} save still pending after {timeout}s")
        saved = False

    _live_sessions.pop(session_id, None)
    if screen:
        controller.request_navigation(screen)
    return jsonify({'closed': True, 'saved': saved, 'sessionId': session_id})


@sessions.route('/records/<string:collection>', methods=['GET'])
def list_records(collection):
    key = _collections.get(collection)
    if key is None:
        return jsonify({'error': 'Unknown collection'}), 404
    records = _coordinator().load_collection(key)
    return jsonify([r.to_dict() for r in records])
