"""
Sockets Package
"""
from examcore.sockets.progress_events import register_socket_events

__all__ = ['register_socket_events']
