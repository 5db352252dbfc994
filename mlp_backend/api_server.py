"""
api_server.py
~~~~~~~~~~~~~

Flask-based REST API server with WebSocket progress events for a single
multilayer perceptron.

This module provides endpoints for:
- Reading the network's current state (weights, values, biases, error, epoch)
- Training the network on posted patterns
- Resetting the network to a fresh random initialization
- Running a forward pass on a feature vector
- Rendering the network as a PNG diagram

The server uses:
- Flask for REST API endpoints
- Flask-CORS for the browser visualizer's cross-origin requests
- Flask-SocketIO for training progress events
- Gevent as the default async mode when run as a server
"""

import logging
from typing import Any, Dict, Optional

from flask import Flask, current_app, jsonify, request
from flask_cors import CORS
from flask_socketio import SocketIO
from werkzeug.exceptions import HTTPException

from mlp_backend.config import ServerConfig
from mlp_backend.errors import (
    DimensionMismatch,
    InvalidEpochCount,
    InvalidPayload,
    NetworkError,
)
from mlp_backend.serialization import (
    NetworkJSONProvider,
    parse_features,
    parse_learning_rate,
    parse_patterns,
    parse_topology,
)
from mlp_backend.state import NetworkService
from mlp_backend.transfer import get_transfer_function
from mlp_backend.visualization import render_network_diagram

logger = logging.getLogger(__name__)

# SocketIO enables real-time communication (WebSockets) for training updates
socketio = SocketIO()

# ============================================================================
# LOGGING SETUP
# ============================================================================

def configure_logging(config: ServerConfig) -> None:
    """
    Set up logging based on environment.

    - In production: Show fewer logs (less noise) but keep important logs
    - In development: Show more detailed logs for debugging
    """
    log_level = getattr(logging, config.log_level, logging.INFO)

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    # In production, silence noisy third-party logs but keep our logs visible
    if config.is_production:
        for logger_name in ['socketio', 'engineio', 'engineio.server',
                            'socketio.server', 'werkzeug']:
            logging.getLogger(logger_name).setLevel(logging.WARNING)
        logging.getLogger('mlp_backend').setLevel(logging.INFO)
    else:
        logging.getLogger('socketio').setLevel(logging.INFO)
        logging.getLogger('engineio').setLevel(logging.INFO)


# ============================================================================
# FLASK APP SETUP
# ============================================================================

def create_app(config: Optional[ServerConfig] = None) -> Flask:
    """
    Create the Flask application and the network it serves.

    The network is owned by a :class:`NetworkService` stored in
    ``app.extensions['mlp_network']``; request handlers reach it through
    :func:`get_service`.
    """
    if config is None:
        config = ServerConfig.from_env()

    configure_logging(config)

    app = Flask(__name__)
    app.json = NetworkJSONProvider(app)
    app.config['MLP_CONFIG'] = config
    CORS(app, resources={r"/api/*": {"origins": config.cors_origins}})

    socketio.init_app(
        app,
        cors_allowed_origins=config.cors_origins,
        async_mode=config.async_mode,
        logger=not config.is_production,
        engineio_logger=not config.is_production,
        ping_timeout=60,
        ping_interval=25
    )

    app.extensions['mlp_network'] = NetworkService(
        config.topology,
        config.learning_rate,
        transfer=get_transfer_function(config.activation),
        seed=config.seed
    )

    register_error_handlers(app)
    register_routes(app)

    logger.info(f"Application created with {config!r}")
    return app


def get_service() -> NetworkService:
    return current_app.extensions['mlp_network']


def get_config() -> ServerConfig:
    return current_app.config['MLP_CONFIG']


def _request_body() -> Dict[str, Any]:
    """Parsed JSON body; an empty or missing body counts as ``{}``."""
    data = request.get_json(silent=True)
    if data is None:
        if request.get_data():
            raise InvalidPayload('Request body must be valid JSON')
        return {}
    if not isinstance(data, dict):
        raise InvalidPayload('Request body must be a JSON object')
    return data


# ============================================================================
# ERROR HANDLERS
# ============================================================================

def register_error_handlers(app: Flask) -> None:

    @app.errorhandler(NetworkError)
    def handle_network_error(e: NetworkError):
        logger.warning(f"Rejected {request.method} {request.path}: {e}")
        body = {'error': str(e), 'kind': e.kind}
        if isinstance(e, DimensionMismatch):
            body.update({
                'field': e.field,
                'expected': e.expected,
                'actual': e.actual,
                'index': e.index
            })
        return jsonify(body), 400

    @app.errorhandler(Exception)
    def handle_unexpected_error(e: Exception):
        # Let Flask render its own HTTP errors (404, 405, ...)
        if isinstance(e, HTTPException):
            return e
        logger.exception(f"Unexpected error handling {request.path}: {e}")
        return jsonify({'error': 'Internal server error'}), 500


# ============================================================================
# API ENDPOINTS
# ============================================================================

def register_routes(app: Flask) -> None:

    @app.route('/api/status', methods=['GET'])
    def get_status():
        """Return server status and a summary of the served network."""
        service = get_service()
        state = service.get_state()
        return jsonify({
            'status': 'online',
            'topology': state['topology'],
            'epoch': state['epoch'],
            'error': state['error']
        }), 200

    @app.route('/api/network/state', methods=['GET'])
    def get_network_state():
        """Return the full network snapshot."""
        return jsonify(get_service().get_state()), 200

    @app.route('/api/network/train', methods=['POST'])
    def train_network():
        """
        Train the network and return the updated snapshot.

        Request body (all optional):
            {
                'patterns': [{'features': [0, 1], 'multipleExpectation': [1]}],
                'epochs': 1000
            }

        Without 'patterns' the configured default set (XOR) is used.
        """
        config = get_config()
        data = _request_body()

        if 'patterns' in data:
            patterns = parse_patterns(data['patterns'])
        else:
            patterns = config.default_patterns

        epochs = data.get('epochs')
        if epochs is None:
            epochs = config.default_epochs
        if isinstance(epochs, bool) or not isinstance(epochs, int) or epochs < 1:
            raise InvalidEpochCount('epochs must be a positive integer')
        if epochs > config.max_epochs:
            raise InvalidEpochCount(
                f"epochs must be at most {config.max_epochs}, got {epochs}"
            )

        logger.info(f"Training on {len(patterns)} pattern(s) for {epochs} epoch(s)")

        def on_epoch_complete(progress: Dict[str, Any]) -> None:
            """Send a progress update every progress_interval epochs."""
            run_epoch = progress['run_epoch']
            total_epochs = progress['total_epochs']
            if run_epoch % config.progress_interval and run_epoch != total_epochs:
                return

            socketio.emit('training_update', {
                'epoch': progress['epoch'],
                'run_epoch': run_epoch,
                'total_epochs': total_epochs,
                'error': progress['error'],
                'elapsed_time': progress['elapsed_time'],
                'progress': run_epoch / total_epochs * 100
            })

            # Let the async worker send the message immediately
            socketio.sleep(0)

        state = get_service().train(patterns, epochs, callback=on_epoch_complete)

        socketio.emit('training_complete', {
            'epoch': state['epoch'],
            'error': state['error'],
            'status': 'completed'
        })

        return jsonify(state), 200

    @app.route('/api/network/reset', methods=['POST'])
    def reset_network():
        """
        Discard all weights and biases and reinitialize the network.

        Request body (optional):
            {'layer_sizes': [2, 4, 1], 'learning_rate': 0.5}
        """
        config = get_config()
        data = _request_body()

        topology = parse_topology(data.get('layer_sizes', config.topology))
        learning_rate = parse_learning_rate(
            data.get('learning_rate'), default=config.learning_rate
        )

        state = get_service().reset(topology, learning_rate)
        return jsonify(state), 200

    @app.route('/api/network/predict', methods=['POST'])
    def predict():
        """
        Run a forward pass without training.

        Request body:
            {'features': [0, 1]}
        """
        data = _request_body()
        if 'features' not in data:
            raise InvalidPayload("Request body is missing 'features'")

        features = parse_features(data['features'])
        outputs = get_service().predict(features)

        return jsonify({'features': features, 'outputs': outputs}), 200

    @app.route('/api/network/diagram', methods=['GET'])
    def get_network_diagram():
        """Return the network drawn as a base64-encoded PNG."""
        state = get_service().get_state()
        return jsonify({
            'epoch': state['epoch'],
            'error': state['error'],
            'image_data': render_network_diagram(state)
        }), 200


# ============================================================================
# SERVER STARTUP
# ============================================================================

def main(config: Optional[ServerConfig] = None) -> None:
    """Run the development server with WebSocket support."""
    if config is None:
        config = ServerConfig.from_env()

    app = create_app(config)
    logger.info(f"Starting server at http://{config.host}:{config.port}/")

    socketio.run(
        app,
        host=config.host,
        port=config.port,
        debug=not config.is_production,
        use_reloader=False,
        allow_unsafe_werkzeug=True
    )
