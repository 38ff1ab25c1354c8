"""Client-side helpers for talking to a PeerConnect server."""
