"""Communication sub-core — everything that touches protocol units.

- Stanza: read-only unit view + outgoing unit builders
- Handlers: one inbound handler per unit kind
- Dispatcher: ordered, short-circuiting handler chain
- Router: private vs group identity, self-echo detection
- Outbound: send pipeline with reply correlation
"""

from .stanza import Unit, Element
from .handlers import HandlerContext
from .dispatcher import StanzaDispatcher, DEFAULT_HANDLERS
from .outbound import SendPipeline
from .router import MessageRouter, Route, RouteKind

__all__ = [
    "Unit",
    "Element",
    "HandlerContext",
    "StanzaDispatcher",
    "DEFAULT_HANDLERS",
    "SendPipeline",
    "MessageRouter",
    "Route",
    "RouteKind",
]
