#!/usr/bin/env python3
"""
GameShelf Web - JSON API for the GameShelf game tracker.

Users register, search the RAWG catalog, keep a personal library of games
(play status, rating, review and other notes), and follow each other.

``create_app`` builds the database session factory, the catalog client and
every service exactly once and stores them on the Flask application; route
handlers reach them through ``current_app`` and open one SQLAlchemy
session per request.
"""

import argparse
import logging
import os
from functools import wraps
from typing import Dict, Optional

from flask import Blueprint, Flask, current_app, g, jsonify, request, session

import database
from catalog_client import RawgClient
from gameshelf.config import DEFAULT_CONFIG, load_config, setup_logging
from gameshelf.exceptions import (
    AuthenticationError, AuthorizationError, NotFound, ValidationError,
    register_error_handlers,
)
from gameshelf.repositories import (
    FollowRepository, GameRepository, LibraryRepository, UserRepository,
)
from gameshelf.services import (
    CatalogService, FollowService, LibraryService, ProfileService, ReviewService,
    UserService, entry_to_dict,
)
from openapi_spec import build_spec

web_logger = logging.getLogger('gameshelf.web')

api = Blueprint('api', __name__, url_prefix='/api')

# JSON request keys -> LibraryEntry attribute names.  ``playStatus`` is the
# name older clients send.
ENTRY_FIELDS = {
    'status': 'status',
    'playStatus': 'status',
    'personalRating': 'personal_rating',
    'review': 'review',
    'hoursPlayed': 'hours_played',
    'completionPercentage': 'completion_percentage',
    'difficulty': 'difficulty',
    'startedAt': 'started_at',
    'completedAt': 'completed_at',
    'lastPlayedAt': 'last_played_at',
    'isFavorite': 'is_favorite',
    'isRecommended': 'is_recommended',
    'playCount': 'play_count',
    'tags': 'tags',
    'notes': 'notes',
}

_TRUE_VALUES = ('1', 'true', 'yes', 'on')


# -----------------------------------------------------------------------
# Application factory
# -----------------------------------------------------------------------

def build_services(catalog_client) -> Dict[str, object]:
    """Wire repositories into services.  Called once per application."""
    users = UserRepository()
    games = GameRepository()
    library = LibraryRepository()
    follows = FollowRepository()

    catalog = CatalogService(catalog_client, games)
    return {
        'catalog': catalog,
        'library': LibraryService(library, users, catalog),
        'profiles': ProfileService(users, library, follows),
        'users': UserService(users),
        'follows': FollowService(follows, users),
        'reviews': ReviewService(library),
    }


def create_app(config: Optional[Dict] = None, session_factory=None,
               catalog_client=None) -> Flask:
    """Create the Flask application.

    Args:
        config:          Settings dict (see :mod:`gameshelf.config`); missing
                         keys fall back to the defaults.
        session_factory: SQLAlchemy ``sessionmaker``.  When omitted an engine
                         is built from ``config['database_url']`` and the
                         tables are created.
        catalog_client:  Catalog client; defaults to a :class:`RawgClient`
                         using ``config['rawg_api_key']``.
    """
    settings = dict(DEFAULT_CONFIG)
    settings.update(config or {})

    app = Flask(__name__)
    if settings.get('secret_key'):
        app.secret_key = settings['secret_key']
    else:
        web_logger.warning('No secret_key configured; sessions will not survive a restart')
        app.secret_key = os.urandom(24)

    if session_factory is None:
        engine = database.make_engine(settings['database_url'])
        if not database.init_db(engine):
            raise RuntimeError(f"Could not initialize database at {settings['database_url']}")
        session_factory = database.make_session_factory(engine)

    if catalog_client is None:
        if not settings.get('rawg_api_key'):
            web_logger.warning('RAWG_API_KEY not configured; catalog endpoints will return 503')
        catalog_client = RawgClient(settings.get('rawg_api_key', ''),
                                    timeout=float(settings['catalog_timeout']))

    app.extensions['gameshelf'] = {
        'session_factory': session_factory,
        'services': build_services(catalog_client),
    }

    register_error_handlers(app)
    app.teardown_appcontext(_close_db)
    app.register_blueprint(api)
    return app


# -----------------------------------------------------------------------
# Request helpers
# -----------------------------------------------------------------------

def get_db():
    """Return this request's SQLAlchemy session, opening it on first use."""
    if 'db' not in g:
        g.db = current_app.extensions['gameshelf']['session_factory']()
    return g.db


def _close_db(exc):
    db = g.pop('db', None)
    if db is not None:
        db.close()


def _service(name: str):
    return current_app.extensions['gameshelf']['services'][name]


def _json_body() -> Dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


def _entry_changes(body: Dict) -> Dict:
    """Translate request keys into entry attribute names.

    Unknown keys are passed through untouched so the service rejects them
    with a field-level error.
    """
    return {ENTRY_FIELDS.get(key, key): value
            for key, value in body.items() if key not in ('game', 'gameId')}


def current_user_id() -> Optional[int]:
    return session.get('user_id')


def require_login(f):
    """Decorator to require a logged-in user."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if current_user_id() is None:
            raise AuthenticationError('Not logged in')
        return f(*args, **kwargs)
    return decorated_function


def require_owner(f):
    """Decorator: the logged-in user must be the ``user_id`` in the URL."""
    @wraps(f)
    @require_login
    def decorated_function(*args, **kwargs):
        if kwargs.get('user_id') != current_user_id():
            raise AuthorizationError('Access denied')
        return f(*args, **kwargs)
    return decorated_function


# -----------------------------------------------------------------------
# Health / docs
# -----------------------------------------------------------------------

@api.route('/health')
def api_health():
    """Simple liveness probe."""
    return jsonify({'status': 'ok', 'service': 'gameshelf'})


@api.route('/openapi.json')
def api_openapi_spec():
    """Serve the OpenAPI 3.0 document describing this API."""
    return jsonify(build_spec(server_url=request.host_url.rstrip('/')))


# -----------------------------------------------------------------------
# Auth endpoints
# -----------------------------------------------------------------------

@api.route('/auth/register', methods=['POST'])
def api_auth_register():
    """Register a new account.

    Body JSON: {"email": ..., "username": ..., "password": ...}
    """
    data = _json_body()
    user = _service('users').register(get_db(), data.get('email'),
                                      data.get('username'), data.get('password'))
    return jsonify({'message': 'User registered successfully',
                    'user': user.to_dict(include_email=True)}), 201


@api.route('/auth/login', methods=['POST'])
def api_auth_login():
    data = _json_body()
    user = _service('users').authenticate(get_db(), data.get('username'), data.get('password'))
    session.clear()
    session['user_id'] = user.id
    web_logger.info('User %s logged in', user.username)
    return jsonify({'message': 'Login successful', 'user': user.to_dict(include_email=True)})


@api.route('/auth/logout', methods=['POST'])
def api_auth_logout():
    session.clear()
    return jsonify({'success': True})


@api.route('/auth/current', methods=['GET'])
@require_login
def api_auth_current():
    """Return the logged-in user."""
    try:
        user = _service('users').get(get_db(), current_user_id())
    except NotFound:
        user = None
    if user is None or not user.is_active:
        session.clear()
        raise AuthenticationError('Not logged in')
    return jsonify({'user': user.to_dict(include_email=True)})


# -----------------------------------------------------------------------
# Catalog endpoints
# -----------------------------------------------------------------------

@api.route('/search', methods=['GET'])
def api_search():
    """Search the game catalog.  Query: ?query=...&page=1&page_size=12"""
    return jsonify(_service('catalog').search(
        request.args.get('query', ''),
        page=request.args.get('page', 1, type=int),
        page_size=request.args.get('page_size', 12, type=int),
    ))


@api.route('/games/<int:game_id>', methods=['GET'])
def api_game_details(game_id: int):
    """Catalog details plus community reviews and the caller's own entry."""
    db = get_db()
    details = _service('catalog').details(game_id)
    reviews = _service('reviews')
    stats = reviews.game_stats(db, game_id)

    user_entry = None
    if current_user_id() is not None:
        entry = _service('library').get(db, current_user_id(), game_id)
        if entry is not None:
            user_entry = entry_to_dict(entry, include_game=False)

    return jsonify({
        'details': details,
        'reviews': reviews.for_game(db, game_id),
        'averageRating': stats['averageRating'],
        'userEntry': user_entry,
    })


@api.route('/games/<int:game_id>/related', methods=['GET'])
def api_related_games(game_id: int):
    return jsonify({'games': _service('catalog').related(game_id)})


@api.route('/games/<int:game_id>/stats', methods=['GET'])
def api_game_stats(game_id: int):
    return jsonify(_service('reviews').game_stats(get_db(), game_id))


# -----------------------------------------------------------------------
# Library endpoints
# -----------------------------------------------------------------------

@api.route('/users/<int:user_id>/games', methods=['POST'])
@require_owner
def api_add_game(user_id: int):
    """Add a game to the user's library.

    Body JSON: {"game": <catalog record or id>} or {"gameId": 42}, plus any
    entry fields, e.g. {"status": "playing", "personalRating": 8}.
    """
    data = _json_body()
    game = data.get('game', data.get('gameId'))
    if game is None:
        raise ValidationError('Validation failed', fields={'game': 'game or gameId is required'})
    entry = _service('library').add(get_db(), user_id, game, fields=_entry_changes(data))
    return jsonify({'message': 'Game added to your library successfully',
                    'entry': entry_to_dict(entry)}), 201


@api.route('/users/<int:user_id>/games', methods=['GET'])
@require_owner
def api_list_games(user_id: int):
    """List the user's library.  Query: ?status=playing&favorites=true"""
    entries = _service('library').list_for_user(
        get_db(), user_id,
        status=request.args.get('status') or None,
        favorites_only=request.args.get('favorites', '').lower() in _TRUE_VALUES,
    )
    return jsonify({'entries': [entry_to_dict(e) for e in entries], 'count': len(entries)})


@api.route('/users/<int:user_id>/games/<int:game_id>', methods=['GET'])
@require_owner
def api_get_entry(user_id: int, game_id: int):
    """Return the entry, or ``inLibrary: false`` when the game is not in the library."""
    entry = _service('library').get(get_db(), user_id, game_id)
    return jsonify({
        'inLibrary': entry is not None,
        'entry': entry_to_dict(entry) if entry is not None else None,
    })


@api.route('/users/<int:user_id>/games/<int:game_id>', methods=['PATCH'])
@require_owner
def api_update_entry(user_id: int, game_id: int):
    entry = _service('library').update(get_db(), user_id, game_id, _entry_changes(_json_body()))
    return jsonify({'message': 'Game updated successfully', 'entry': entry_to_dict(entry)})


@api.route('/users/<int:user_id>/games/<int:game_id>', methods=['DELETE'])
@require_owner
def api_remove_entry(user_id: int, game_id: int):
    _service('library').remove(get_db(), user_id, game_id)
    return jsonify({'message': 'Game removed from your library successfully'})


# -----------------------------------------------------------------------
# User / profile endpoints
# -----------------------------------------------------------------------

@api.route('/users/<int:user_id>/profile', methods=['GET'])
def api_get_profile(user_id: int):
    return jsonify(_service('profiles').get_profile(get_db(), user_id))


@api.route('/users/<int:user_id>/profile', methods=['PATCH'])
@require_owner
def api_update_profile(user_id: int):
    """Body JSON: any of {"bio", "avatar", "preferences"}."""
    user = _service('users').update_profile(get_db(), user_id, _json_body())
    return jsonify({'message': 'Profile updated successfully',
                    'user': user.to_dict(include_email=True)})


@api.route('/users/search', methods=['GET'])
def api_search_users():
    users = _service('users').search(get_db(), request.args.get('query', ''),
                                     limit=request.args.get('limit', 10, type=int))
    return jsonify({'users': [u.to_dict() for u in users]})


# -----------------------------------------------------------------------
# Follow endpoints
# -----------------------------------------------------------------------

@api.route('/users/<int:user_id>/follow', methods=['POST'])
@require_login
def api_follow(user_id: int):
    _service('follows').follow(get_db(), current_user_id(), user_id)
    return jsonify({'success': True, 'following': user_id}), 201


@api.route('/users/<int:user_id>/follow', methods=['DELETE'])
@require_login
def api_unfollow(user_id: int):
    _service('follows').unfollow(get_db(), current_user_id(), user_id)
    return jsonify({'success': True})


@api.route('/users/<int:user_id>/followers', methods=['GET'])
def api_followers(user_id: int):
    users = _service('follows').followers(get_db(), user_id)
    return jsonify({'users': [u.to_dict() for u in users], 'count': len(users)})


@api.route('/users/<int:user_id>/following', methods=['GET'])
def api_following(user_id: int):
    users = _service('follows').following(get_db(), user_id)
    return jsonify({'users': [u.to_dict() for u in users], 'count': len(users)})


# -----------------------------------------------------------------------
# Entry point
# -----------------------------------------------------------------------

def _add_file_handler(path: str, level: str) -> None:
    logger = logging.getLogger('gameshelf')
    try:
        os.makedirs(os.path.dirname(path) or '.', exist_ok=True)
        fh = logging.FileHandler(path)
        fh.setFormatter(logging.Formatter('[%(asctime)s] %(levelname)s %(name)s: %(message)s'))
        fh.setLevel(getattr(logging, level.upper(), logging.INFO))
        logger.addHandler(fh)
    except OSError:
        logger.warning('Could not create log file handler for %s', path)


def main():
    """Main entry point for the web server"""
    parser = argparse.ArgumentParser(description='GameShelf Web API')
    parser.add_argument('--config', default='config.json', help='Path to config file')
    parser.add_argument('--host', default=None, help='Interface to bind')
    parser.add_argument('--port', type=int, default=None, help='Port to listen on')
    parser.add_argument('--debug', action='store_true', help='Enable Flask debug mode')
    args = parser.parse_args()

    config = load_config(args.config)
    setup_logging(config['log_level'])
    if config.get('log_file'):
        _add_file_handler(config['log_file'], config['log_level'])

    app = create_app(config)
    host = args.host or config['host']
    port = args.port or config['port']
    web_logger.info('Starting GameShelf on %s:%s', host, port)
    app.run(host=host, port=port, debug=args.debug)


if __name__ == "__main__":
    main()
