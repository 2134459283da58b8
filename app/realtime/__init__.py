"""
Realtime gateway (Socket.IO): presence, rooms, broadcasts and answer autosave.
"""
