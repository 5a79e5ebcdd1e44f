#!/usr/bin/env python3
"""Local development server for MovSense Python functions.

This server mimics the Firebase Functions emulator endpoints.

Usage:
    cd functions
    source venv/bin/activate
    python serve_local.py

This will start a Flask server that handles:
- POST /<project>/us-central1/detect_furniture -> detect_furniture function
- POST /<project>/us-central1/calculate_move_time -> calculate_move_time function
- POST /<project>/us-central1/plan_trucks -> plan_trucks function
"""

import os

# Set environment for local development
os.environ.setdefault('FUNCTIONS_EMULATOR', 'true')
os.environ.setdefault('GCLOUD_PROJECT', 'movsense-dev')
os.environ.setdefault('USE_FIREBASE_EMULATORS', 'true')
os.environ.setdefault('FIRESTORE_EMULATOR_HOST', '127.0.0.1:8081')

from flask import Flask, request, jsonify
from flask_cors import CORS

# Import the main module after setting env vars
from main import (
    detect_furniture,
    calculate_move_time,
    plan_trucks,
)

PROJECT = os.environ['GCLOUD_PROJECT']

app = Flask(__name__)
CORS(app)


class MockRequest:
    """Mock Firebase request object to wrap Flask request."""

    def __init__(self, flask_request):
        self._request = flask_request
        self.method = flask_request.method
        self.headers = dict(flask_request.headers)

    def get_json(self, force=False, silent=False):
        return self._request.get_json(force=force, silent=silent)


def wrap_firebase_function(firebase_fn):
    """Wrap a Firebase function to work with Flask."""
    def wrapper():
        mock_req = MockRequest(request)
        response = firebase_fn(mock_req)
        return response.get_data(), response.status_code, dict(response.headers)
    return wrapper


@app.route(f'/{PROJECT}/us-central1/detect_furniture', methods=['POST', 'OPTIONS'])
def handle_detect_furniture():
    return wrap_firebase_function(detect_furniture)()


@app.route(f'/{PROJECT}/us-central1/calculate_move_time', methods=['POST', 'OPTIONS'])
def handle_calculate_move_time():
    return wrap_firebase_function(calculate_move_time)()


@app.route(f'/{PROJECT}/us-central1/plan_trucks', methods=['POST', 'OPTIONS'])
def handle_plan_trucks():
    return wrap_firebase_function(plan_trucks)()


# Health check
@app.route('/health', methods=['GET'])
def health():
    return jsonify({'status': 'ok', 'service': 'movsense-python-functions'})


if __name__ == '__main__':
    port = int(os.environ.get('PORT', 5002))
    print(f"""
╔════════════════════════════════════════════════════════════════╗
║  MovSense Python Functions - Local Development Server          ║
╠════════════════════════════════════════════════════════════════╣
║                                                                ║
║  Server running on: http://127.0.0.1:{port}
║                                                                ║
║  Endpoints:                                                    ║
║  • POST /{PROJECT}/us-central1/detect_furniture
║  • POST /{PROJECT}/us-central1/calculate_move_time
║  • POST /{PROJECT}/us-central1/plan_trucks
║                                                                ║
╚════════════════════════════════════════════════════════════════╝
""")
    app.run(host='127.0.0.1', port=port, debug=True, threaded=True)
