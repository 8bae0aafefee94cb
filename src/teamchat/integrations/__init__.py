"""
Integrations Module - Team Chat Transport
=========================================

Modules:
    frame_codec: Total JSON decoding and pure encoding of wire frames
    event_dispatcher: Per-kind subscriber registries with snapshot dispatch
    reconnect_policy: Exclusive, cancellable reconnection timer
    team_chat_client: Connection state machine tying the pieces together

Key Components:

Team Chat Client (team_chat_client.py):
    Owns one WebSocket connection at a time:
    - Sends exactly one join_team per successful open
    - Discards frames from superseded connection epochs
    - Re-dials after involuntary closes until disconnect() is called
"""
