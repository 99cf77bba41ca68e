"""
Tests for the Flask adapter.
"""
import base64
import json
from io import BytesIO

import numpy as np
import pytest
from PIL import Image as PILImage


@pytest.fixture
def app():
    """Create Flask test application."""
    from api_server import app as flask_app, sessions
    flask_app.config['TESTING'] = True
    sessions.clear()
    yield flask_app
    sessions.clear()


@pytest.fixture
def client(app):
    """Create Flask test client."""
    return app.test_client()


def upload(client, png_bytes, session_id=None, filename="gradient.png", content_type="image/png"):
    data = {'image': (BytesIO(png_bytes), filename, content_type)}
    if session_id:
        data['session_id'] = session_id
    return client.post('/api/upload', data=data, content_type='multipart/form-data')


def decode_data_url(url):
    assert url.startswith("data:image/png;base64,")
    raw = base64.b64decode(url.split(",", 1)[1])
    with PILImage.open(BytesIO(raw)) as img:
        return np.array(img.convert("RGBA"))


@pytest.fixture
def session_id(client, png_bytes):
    response = upload(client, png_bytes)
    assert response.status_code == 200
    return json.loads(response.data)['session_id']


class TestHealthEndpoint:
    """Test health check endpoint."""

    def test_health_returns_ok(self, client):
        response = client.get('/api/health')
        assert response.status_code == 200
        assert json.loads(response.data)['status'] == 'healthy'


class TestUploadEndpoint:
    """Test image upload."""

    def test_upload_returns_filtered_image(self, client, png_bytes, gradient_pixels):
        response = upload(client, png_bytes)
        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['threshold'] == 15
        assert (data['width'], data['height']) == (64, 4)
        pixels = decode_data_url(data['image'])
        assert tuple(pixels[0, 0]) == (0, 240, 0, 255)
        np.testing.assert_array_equal(pixels[:, :, 3], gradient_pixels[:, :, 3])

    def test_upload_requires_image(self, client):
        response = client.post('/api/upload', data={}, content_type='multipart/form-data')
        assert response.status_code == 400

    def test_upload_rejects_non_image(self, client):
        response = upload(client, b"hello", filename="notes.txt", content_type="text/plain")
        assert response.status_code == 400
        data = json.loads(response.data)
        assert data['error_code'] == 'UNSUPPORTED_IMAGE'
        assert data['error'] == 'Please upload a valid image file'

    def test_upload_accepts_supported_extension_without_image_mimetype(self, client, png_bytes):
        response = upload(client, png_bytes, content_type="application/octet-stream")
        assert response.status_code == 200

    def test_upload_rejects_undecodable(self, client):
        response = upload(client, b"not really a png")
        assert response.status_code == 400
        assert json.loads(response.data)['error_code'] == 'UNSUPPORTED_IMAGE'

    def test_upload_reuses_session(self, client, png_bytes, session_id):
        client.post('/api/threshold', json={'session_id': session_id, 'threshold': 200})
        data = json.loads(upload(client, png_bytes, session_id=session_id).data)
        assert data['session_id'] == session_id
        assert data['threshold'] == 200


class TestThresholdEndpoint:
    """Test threshold changes."""

    def test_set_threshold_refilters(self, client, session_id):
        response = client.post('/api/threshold', json={'session_id': session_id, 'threshold': 255})
        assert response.status_code == 200
        pixels = decode_data_url(json.loads(response.data)['image'])
        assert all(tuple(p) == (0, 240, 0) for p in pixels[0, :, :3])

    def test_form_string_threshold(self, client, session_id):
        response = client.post('/api/threshold', data={'session_id': session_id, 'threshold': '100'})
        assert json.loads(response.data)['threshold'] == 100

    def test_out_of_range(self, client, session_id):
        response = client.post('/api/threshold', json={'session_id': session_id, 'threshold': 300})
        assert response.status_code == 400
        assert json.loads(response.data)['error_code'] == 'INVALID_THRESHOLD'

    def test_json_float_threshold_truncates(self, client, session_id):
        response = client.post('/api/threshold', json={'session_id': session_id, 'threshold': 42.0})
        assert response.status_code == 200
        assert json.loads(response.data)['threshold'] == 42
        response = client.post('/api/threshold', json={'session_id': session_id, 'threshold': 99.9})
        assert json.loads(response.data)['threshold'] == 99

    def test_missing_threshold(self, client, session_id):
        response = client.post('/api/threshold', json={'session_id': session_id})
        assert response.status_code == 400

    def test_unknown_session(self, client):
        response = client.post('/api/threshold', json={'session_id': 'nope', 'threshold': 20})
        assert response.status_code == 404


class TestPresetEndpoints:
    """Test preset listing and selection."""

    def test_list(self, client):
        data = json.loads(client.get('/api/presets').data)
        assert data['presets']['dark'] == 15

    def test_apply(self, client, session_id):
        response = client.post('/api/preset', json={'session_id': session_id, 'preset': 'bright'})
        assert json.loads(response.data)['threshold'] == 150

    def test_unknown(self, client, session_id):
        response = client.post('/api/preset', json={'session_id': session_id, 'preset': 'blinding'})
        assert response.status_code == 400


class TestExportEndpoints:
    """Test download and share."""

    def test_download(self, client, session_id):
        response = client.get(f'/api/download/{session_id}')
        assert response.status_code == 200
        assert response.mimetype == 'image/png'
        disposition = response.headers['Content-Disposition']
        assert 'attachment' in disposition and 'loot-survivor-' in disposition
        assert response.data.startswith(b"\x89PNG")

    def test_download_without_image(self, client):
        from api_server import get_or_create_session
        empty = get_or_create_session()
        response = client.get(f'/api/download/{empty.session_id}')
        assert response.status_code == 409
        assert json.loads(response.data)['error_code'] == 'NO_IMAGE_LOADED'

    def test_share(self, client, session_id):
        data = json.loads(client.post('/api/share', json={'session_id': session_id}).data)
        assert data['intent_url'].startswith('https://twitter.com/intent/tweet?text=')
        decode_data_url(data['image'])


class TestResetEndpoint:
    """Test reset."""

    def test_reset(self, client, session_id):
        client.post('/api/threshold', json={'session_id': session_id, 'threshold': 99})
        data = json.loads(client.post('/api/reset', json={'session_id': session_id}).data)
        assert data['threshold'] == 15
        assert data['has_image'] is False
        assert 'image' not in data

    def test_reset_frees_sessions(self, client, png_bytes):
        from api_server import sessions
        ids = [json.loads(upload(client, png_bytes).data)['session_id'] for _ in range(5)]
        assert len(sessions) == 5
        for sid in ids:
            assert client.post('/api/reset', json={'session_id': sid}).status_code == 200
        assert len(sessions) == 0
        assert json.loads(client.get('/api/health').data)['active_sessions'] == 0

    def test_reset_session_is_gone(self, client, session_id):
        client.post('/api/reset', json={'session_id': session_id})
        response = client.post('/api/threshold', json={'session_id': session_id, 'threshold': 20})
        assert response.status_code == 404
        assert client.post('/api/reset', json={'session_id': session_id}).status_code == 404

    def test_upload_after_reset_starts_fresh(self, client, png_bytes, session_id):
        client.post('/api/threshold', json={'session_id': session_id, 'threshold': 99})
        client.post('/api/reset', json={'session_id': session_id})
        data = json.loads(upload(client, png_bytes, session_id=session_id).data)
        assert data['threshold'] == 15


class TestPresetConfig:
    """Test presets are parsed once at import."""

    def test_sessions_share_module_presets(self, client, session_id):
        from api_server import PRESETS, sessions
        assert sessions[session_id].filter.presets is PRESETS
