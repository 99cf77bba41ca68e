#!/usr/bin/env python3
"""
Dungeon Filter API Server
Thin HTTP adapter around the threshold filter: upload an image, move the
threshold, pick a preset, download or share the result.
"""

import os
import logging
import uuid
import base64
from io import BytesIO
from typing import Dict
from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

from flask import Flask, request, jsonify, send_file
from flask_cors import CORS
from werkzeug.utils import secure_filename

# --- Centralized Logging Configuration ---
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
    datefmt='%H:%M:%S'
)

# Import services and models
from dungeon_filter.models.errors import (
    DungeonFilterError, InvalidThreshold, MalformedBuffer, NoImageLoaded, UnsupportedImage
)
from dungeon_filter.models.image import Image
from dungeon_filter.services.image_service import ImageService
from dungeon_filter.services.filter_service import DEFAULT_PRESETS, FilterService, parse_presets
from dungeon_filter.services.export_service import ExportService

app = Flask(__name__)
CORS(app)  # Enable CORS for frontend communication

# Configuration
PRESETS = parse_presets(os.getenv("PRESET_THRESHOLDS", DEFAULT_PRESETS))
MAX_CONTENT_LENGTH = int(os.getenv("MAX_UPLOAD_SIZE_MB", "20")) * 1024 * 1024

app.config['MAX_CONTENT_LENGTH'] = MAX_CONTENT_LENGTH

# Initialize services
image_service = ImageService()
export_service = ExportService(image_service)

logger = logging.getLogger(__name__)

_ERROR_STATUS = {
    InvalidThreshold: 400,
    MalformedBuffer: 400,
    UnsupportedImage: 400,
    NoImageLoaded: 409,
}


class FilterSession:
    """Filter state for a single client: one current image and one threshold."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        self.filter = FilterService(image_service=image_service, presets=PRESETS)

    def clear(self):
        """Drop the image and restore the default threshold."""
        self.filter.reset()


# Session storage for filter state
sessions: Dict[str, FilterSession] = {}


class SessionNotFound(Exception):
    pass


def get_or_create_session(session_id: str = None) -> FilterSession:
    """Get existing session or create new one."""
    if not session_id:
        session_id = str(uuid.uuid4())

    if session_id not in sessions:
        sessions[session_id] = FilterSession(session_id)

    return sessions[session_id]


def get_session(session_id: str) -> FilterSession:
    if not session_id or session_id not in sessions:
        raise SessionNotFound(session_id)
    return sessions[session_id]


def request_value(name: str):
    """Read a field from a JSON body or a form post."""
    payload = request.get_json(silent=True)
    if isinstance(payload, dict) and name in payload:
        return payload[name]
    return request.form.get(name)


def allowed_file(filename: str) -> bool:
    """Check if file extension is allowed."""
    return image_service.is_supported(filename)


def image_to_base64(image: Image) -> str:
    """Encode Image pixels as a PNG data URL for JSON responses."""
    png = image_service.encode_png(image)
    return f"data:image/png;base64,{base64.b64encode(png).decode('utf-8')}"


def filter_state(session: FilterSession, image: Image = None) -> dict:
    body = {
        'success': True,
        'session_id': session.session_id,
        'threshold': session.filter.threshold,
        'has_image': session.filter.has_image,
    }
    if image is not None:
        body['width'] = image.width
        body['height'] = image.height
        body['image'] = image_to_base64(image)
    return body


@app.route('/api/upload', methods=['POST'])
def upload_image():
    """Load an image into the session and filter it at the current threshold."""
    session = get_or_create_session(request.form.get('session_id'))

    if 'image' not in request.files:
        return jsonify({'success': False, 'error': 'No image provided'}), 400

    file = request.files['image']
    if file.filename == '':
        return jsonify({'success': False, 'error': 'No file selected'}), 400

    filename = secure_filename(file.filename)
    mimetype = file.mimetype or ''
    if not mimetype.startswith('image/') and not allowed_file(filename):
        raise UnsupportedImage(filename, f"content type {mimetype or 'unknown'}")

    image = session.filter.load_bytes(file.read(), filename)
    logger.info(f"Session {session.session_id}: loaded {filename} ({image.width}x{image.height})")
    return jsonify(filter_state(session, image))


@app.route('/api/threshold', methods=['POST'])
def set_threshold():
    """Change the threshold and re-filter the current image, if any."""
    session = get_session(request_value('session_id'))
    raw = request_value('threshold')
    if raw is None:
        raise InvalidThreshold(raw)

    image = session.filter.set_threshold(raw)
    return jsonify(filter_state(session, image))


@app.route('/api/presets', methods=['GET'])
def list_presets():
    """Named thresholds offered as one-click buttons."""
    return jsonify({'success': True, 'presets': PRESETS})


@app.route('/api/preset', methods=['POST'])
def apply_preset():
    """Set the threshold from a named preset."""
    session = get_session(request_value('session_id'))
    name = request_value('preset')
    if name is None or str(name).strip().lower() not in session.filter.presets:
        return jsonify({
            'success': False,
            'error': f'Unknown preset: {name}',
            'presets': sorted(session.filter.presets),
        }), 400

    image = session.filter.apply_preset(name)
    return jsonify(filter_state(session, image))


@app.route('/api/download/<session_id>', methods=['GET'])
def download_image(session_id):
    """Filtered image as a PNG attachment."""
    session = get_session(session_id)
    png = export_service.to_png(session.filter)
    return send_file(
        BytesIO(png),
        mimetype='image/png',
        as_attachment=True,
        download_name=export_service.default_filename(),
    )


@app.route('/api/share', methods=['POST'])
def share_image():
    """PNG for the clipboard plus a pre-filled post intent."""
    session = get_session(request_value('session_id'))
    payload = export_service.share(session.filter)
    return jsonify({
        'success': True,
        'session_id': session.session_id,
        'image': f"data:image/png;base64,{base64.b64encode(payload.png).decode('utf-8')}",
        'text': payload.text,
        'intent_url': payload.intent_url,
    })


@app.route('/api/reset', methods=['POST'])
def reset_session():
    """Drop the image, return to the default threshold and free the session."""
    session = get_session(request_value('session_id'))
    session.clear()
    del sessions[session.session_id]
    logger.info(f"Session {session.session_id} cleared")
    return jsonify(filter_state(session))


@app.route('/api/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return jsonify({
        'status': 'healthy',
        'message': 'Dungeon Filter API is running',
        'active_sessions': len(sessions)
    })


@app.errorhandler(DungeonFilterError)
def filter_error(e):
    """Typed filter errors become JSON with a matching status."""
    status = _ERROR_STATUS.get(type(e), 400)
    logger.warning(f"{e.error_code}: {e.message}")
    return jsonify(e.to_dict()), status


@app.errorhandler(SessionNotFound)
def session_not_found(e):
    return jsonify({'success': False, 'error': 'Invalid session', 'error_code': 'SESSION_NOT_FOUND'}), 404


@app.errorhandler(413)
def too_large(e):
    """Handle file too large error."""
    return jsonify({'success': False,
                    'error': f'File too large. Maximum size is {MAX_CONTENT_LENGTH // (1024 * 1024)}MB.'}), 413


@app.errorhandler(500)
def internal_error(e):
    """Handle internal server error."""
    logger.error(f"Internal server error: {e}")
    return jsonify({'success': False, 'error': 'Internal server error'}), 500


def main():
    host = os.getenv("API_HOST", "127.0.0.1")
    port = int(os.getenv("API_PORT", "5000"))
    print("🚀 Starting Dungeon Filter API Server...")
    print(f"🔧 Max upload size: {MAX_CONTENT_LENGTH // (1024*1024)}MB")
    print("🌐 CORS enabled for frontend communication")
    print("=" * 60)
    app.run(host=host, port=port, debug=False)


if __name__ == '__main__':
    main()
