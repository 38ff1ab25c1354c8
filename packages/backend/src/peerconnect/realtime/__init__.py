"""Real-time infrastructure — chat WebSocket + Redis fan-out.

Learn: messages flow
1. Client → /chat WebSocket → gateway (validate, persist)
2. gateway/services → ChatHub.publish_* → Redis PUBLISH
3. Redis PSUBSCRIBE (one listener per process) → ChatHub → local sockets

Without Redis the hub delivers in-process, which is all a single server
needs.
"""
