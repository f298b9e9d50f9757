"""hipbot: XMPP chat bot bridging HipChat conversations to a dialog engine."""

__version__ = "0.4.0"
