"""PeerConnect — peer-support community backend.

Users register and verify their e-mail, pick the topics they care about,
join peer groups, meet in scheduled sessions, share resources and chat
in real time.
"""

__version__ = "0.1.0"
