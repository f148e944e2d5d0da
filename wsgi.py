"""
PythonAnywhere WSGI entry point.

In the PythonAnywhere Web tab:
  - Source code:    /home/<your-username>/doodeurim-challenge
  - Working dir:    /home/<your-username>/doodeurim-challenge
  - WSGI file:      /home/<your-username>/doodeurim-challenge/wsgi.py
  - Virtualenv:     /home/<your-username>/doodeurim-challenge/.venv

A hosting shell that injects globals (``__challenge_config``, ``__app_id``,
``__initial_auth_token``) can point CHALLENGE_HOST_GLOBALS at a JSON file
holding them; otherwise the CHALLENGE_* environment variables are used.
"""
import sys
import os
import json
import logging

# Make sure the project directory is on the path
project_dir = os.path.dirname(os.path.abspath(__file__))
if project_dir not in sys.path:
    sys.path.insert(0, project_dir)

from app import create_app  # noqa: E402


def _host_globals():
    path = os.environ.get("CHALLENGE_HOST_GLOBALS")
    if not path or not os.path.exists(path):
        return None
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


logging.basicConfig(level=logging.INFO)
application = create_app(host_globals=_host_globals())  # PythonAnywhere looks for 'application'
