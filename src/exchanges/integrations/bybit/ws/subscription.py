"""
Subscription management for the Bybit private stream.

The desired topic set is the source of truth and is independent of the
connection: subscribe/unsubscribe change it immediately and only send the
delta while authenticated. After every successful handshake one subscribe
request covering the whole desired set is sent.

Inbound data frames are routed by topic to handlers registered either for
the exact topic or for a dot-delimited prefix ("orderbook.1" receives
"orderbook.1.BTCUSDT"); the longest registered key wins.
"""

from typing import Any, Awaitable, Callable, Dict, FrozenSet, Iterable, List, Optional, Set, Tuple, Union

from infrastructure.exceptions.exchange import NotAuthenticatedError, NotConnectedError
from infrastructure.logging import LoggerInterface, get_exchange_logger
from infrastructure.networking.websocket import ConnectionState
from exchanges.integrations.bybit.ws.private_session import BybitPrivateSession
from exchanges.integrations.bybit.ws.structs import SubscriptionHealth
from utils.task_utils import invoke_handler

TopicHandler = Callable[[Dict[str, Any]], Union[None, Awaitable[None]]]
Topics = Union[str, Iterable[str]]


def _as_topic_set(topics: Topics) -> Set[str]:
    if isinstance(topics, str):
        topics = [topics]
    result = {t for t in topics if t}
    if not result:
        raise ValueError("At least one topic is required")
    return result


class SubscriptionManager:
    """
    Desired-state subscriptions with reconnect-safe resubscription.

    Args:
        session: Authenticated session the requests are sent through
        logger: Injected logger
    """

    def __init__(self, session: BybitPrivateSession, logger: Optional[LoggerInterface] = None):
        self.session = session
        self.logger = logger or get_exchange_logger('bybit', 'ws.subscriptions')

        self._desired: Set[str] = set()
        self._rejected: Set[str] = set()
        self._pending: Dict[str, Tuple[str, FrozenSet[str]]] = {}
        self._handlers: Dict[str, List[TopicHandler]] = {}
        self.dropped_messages = 0

        session.on_authenticated(self._on_authenticated)
        session.transport.on_message(self._on_message)
        session.transport.on_state_change(self._on_transport_state)

    @property
    def desired_topics(self) -> FrozenSet[str]:
        return frozenset(self._desired)

    @property
    def rejected_topics(self) -> FrozenSet[str]:
        return frozenset(self._rejected)

    def add_handler(self, key: str, handler: TopicHandler) -> TopicHandler:
        """Route frames whose topic equals key, or starts with key followed by '.'."""
        self._handlers.setdefault(key, []).append(handler)
        return handler

    def remove_handler(self, key: str, handler: TopicHandler) -> None:
        handlers = self._handlers.get(key)
        if handlers and handler in handlers:
            handlers.remove(handler)
            if not handlers:
                del self._handlers[key]

    async def subscribe(self, topics: Topics) -> None:
        """Add topics to the desired set; sends the new ones if authenticated."""
        topics = _as_topic_set(topics)
        delta = sorted(t for t in topics if t not in self._desired or t in self._rejected)
        self._desired.update(topics)
        if delta and self.session.is_authenticated:
            await self._send('subscribe', delta)

    async def unsubscribe(self, topics: Topics) -> None:
        """Remove topics from the desired set; sends the removal if authenticated."""
        topics = _as_topic_set(topics)
        delta = sorted(t for t in topics if t in self._desired)
        self._desired.difference_update(topics)
        self._rejected.difference_update(topics)
        if delta and self.session.is_authenticated:
            await self._send('unsubscribe', delta)

    def health(self) -> SubscriptionHealth:
        return SubscriptionHealth(
            desired=frozenset(self._desired),
            rejected=frozenset(self._rejected),
            pending_requests=len(self._pending),
            dropped_messages=self.dropped_messages,
        )

    async def _send(self, op: str, topics: List[str]) -> None:
        req_id = self.session.next_req_id(op)
        self._pending[req_id] = (op, frozenset(topics))
        try:
            await self.session.send({"req_id": req_id, "op": op, "args": topics})
        except (NotAuthenticatedError, NotConnectedError) as e:
            # The desired set already reflects the change; the next handshake resends it
            self._pending.pop(req_id, None)
            self.logger.warning("Subscription request not sent", op=op, topics=topics, error=str(e))
            return
        self.logger.debug("Subscription request sent", op=op, topics=topics, req_id=req_id)

    async def _on_authenticated(self) -> None:
        if self._desired:
            await self._send('subscribe', sorted(self._desired))

    def _on_transport_state(self, state: ConnectionState) -> None:
        if state in (ConnectionState.CLOSING, ConnectionState.DISCONNECTED):
            self._pending.clear()

    async def _on_message(self, message: Any) -> None:
        if not isinstance(message, dict):
            return

        op = message.get('op')
        if op in ('subscribe', 'unsubscribe'):
            self._handle_ack(op, message)
            return
        if op is not None:
            return

        topic = message.get('topic')
        handlers = self._match(topic) if topic else None
        if not handlers:
            self.dropped_messages += 1
            self.logger.counter("ws_unmatched_messages", topic=topic or "")
            return

        for handler in list(handlers):
            try:
                await invoke_handler(handler, message)
            except Exception as e:
                self.logger.error("Topic handler failed", topic=topic, error=repr(e))

    def _match(self, topic: str) -> Optional[List[TopicHandler]]:
        if topic in self._handlers:
            return self._handlers[topic]
        parts = topic.split('.')
        for i in range(len(parts) - 1, 0, -1):
            handlers = self._handlers.get('.'.join(parts[:i]))
            if handlers:
                return handlers
        return None

    def _handle_ack(self, op: str, message: Dict[str, Any]) -> None:
        request = self._pending.pop(message.get('req_id') or '', None)
        requested = request[1] if request else frozenset()
        success = bool(message.get('success'))
        ret_msg = message.get('ret_msg') or ''

        data = message.get('data')
        fail_topics = set(data.get('failTopics') or []) if isinstance(data, dict) else set()

        if op == 'unsubscribe':
            if not success:
                self.logger.warning("Unsubscribe rejected", topics=sorted(requested), ret_msg=ret_msg)
            return

        failed = fail_topics if success or fail_topics else set(requested)
        self._rejected.difference_update(requested - failed)
        self._rejected.update(t for t in failed if t in self._desired)

        if failed:
            self.logger.warning("Subscription rejected" if not success else "Subscription partially rejected",
                                topics=sorted(failed), ret_msg=ret_msg)
            self.logger.counter("ws_rejected_topics", len(failed))
        elif not success:
            self.logger.warning("Unattributed subscription failure", ret_msg=ret_msg,
                                req_id=message.get('req_id'))
        else:
            self.logger.debug("Subscription confirmed", topics=sorted(requested))
