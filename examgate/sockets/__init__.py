"""
Sockets Package
"""
from examgate.sockets.proctor_events import register_socket_events

__all__ = ['register_socket_events']
