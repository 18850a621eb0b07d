"""Flask extensions for the application."""
from flask_socketio import SocketIO

socketio = SocketIO()
