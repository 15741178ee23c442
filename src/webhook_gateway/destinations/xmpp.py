"""XMPP Destination - Sends messages as an authenticated XMPP client.

Recipients are given as JIDs. A recipient with a resource part
("room@conference.example.com/alertbot") is treated as a multi-user chat room,
joined under that nickname and sent group-chat messages. Any other recipient
gets direct chat messages.
"""

import asyncio
import logging
import ssl
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from webhook_gateway.config import parse_adapter_config
from webhook_gateway.errors import ConfigurationError, DeliveryError
from webhook_gateway.gateway import Destination, Message
from webhook_gateway.registry import register_destination

log = logging.getLogger(__name__)

try:
    from slixmpp import JID, ClientXMPP
    from slixmpp.jid import InvalidJID
    _SLIXMPP_AVAILABLE = True
except ImportError:
    JID = None
    ClientXMPP = None
    InvalidJID = None
    _SLIXMPP_AVAILABLE = False


class XMPPConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    jid: str = Field(min_length=1)
    password: str = ""
    recipients: Union[str, List[str]]
    no_tls: bool = Field(default=False, alias="no-tls")
    no_verify_tls: bool = Field(default=False, alias="no-verify-tls")
    use_starttls: bool = Field(default=False, alias="use-starttls")
    timeout: float = Field(default=30.0, gt=0)


def _require_slixmpp() -> None:
    if not _SLIXMPP_AVAILABLE:
        raise ImportError(
            "slixmpp library is required for XMPPDestination. "
            "Install with: pip install webhook-gateway[xmpp]"
        )


def parse_jid(value: str, role: str) -> "JID":
    _require_slixmpp()
    try:
        jid = JID(value)
    except InvalidJID as e:
        raise ConfigurationError(f"failed parsing {role} JID: {e}") from e
    if not jid.bare:
        raise ConfigurationError(f"failed parsing {role} JID: empty JID")
    return jid


class XMPPDestination(Destination):
    """
    XMPP destination using slixmpp.

    The client connects and authenticates in init(), then announces its
    presence to the server and to every recipient. Pushes are serialized on
    the single client session.

    Args:
        jid: JID to authenticate as (e.g. "alerts@example.com")
        password: Password for the client JID
        recipients: Recipient JIDs, as a list or a space-separated string
        no_tls: Connect without direct TLS. Default: False
        no_verify_tls: Skip TLS certificate verification. Default: False
        use_starttls: Negotiate StartTLS on the connection. Default: False
        timeout: Seconds to wait for the session to start. Default: 30

    Usage:
        destination = XMPPDestination(
            jid="alerts@example.com",
            password=os.getenv("XMPP_PASSWORD"),
            recipients="ops@example.com oncall@conference.example.com/alertbot",
        )
        await destination.init()
        await destination.push_messages([Message(content="Disk is full")])
    """

    def __init__(
        self,
        jid: Optional[str] = None,
        password: str = "",
        recipients: Union[str, List[str], None] = None,
        no_tls: bool = False,
        no_verify_tls: bool = False,
        use_starttls: bool = False,
        timeout: float = 30.0,
    ):
        self.jid = jid
        self.password = password
        self.recipients: List[str] = self._split(recipients)
        self.no_tls = no_tls
        self.no_verify_tls = no_verify_tls
        self.use_starttls = use_starttls
        self.timeout = timeout

        self.client = None
        self.connected = False
        self._lock = asyncio.Lock()

    @staticmethod
    def _split(recipients: Union[str, List[str], None]) -> List[str]:
        if recipients is None:
            return []
        if isinstance(recipients, str):
            return recipients.split()
        return [r for item in recipients for r in item.split()]

    def configure(self, data: Dict[str, Any]) -> None:
        conf = parse_adapter_config(XMPPConfig, data, "destination", "xmpp")

        recipients = self._split(conf.recipients)
        if _SLIXMPP_AVAILABLE:
            parse_jid(conf.jid, "client")
            for recipient in recipients:
                parse_jid(recipient, "recipient")

        self.jid = conf.jid
        self.password = conf.password
        self.recipients = recipients
        self.no_tls = conf.no_tls
        self.no_verify_tls = conf.no_verify_tls
        self.use_starttls = conf.use_starttls
        self.timeout = conf.timeout

    def _configure_transport(self, client) -> None:
        client.enable_direct_tls = not self.no_tls
        client.enable_starttls = self.use_starttls
        client.enable_plaintext = self.no_tls and not self.use_starttls

        if self.no_verify_tls:
            client.ssl_context.check_hostname = False
            client.ssl_context.verify_mode = ssl.CERT_NONE

    async def init(self) -> None:
        _require_slixmpp()
        if not self.jid:
            raise ConfigurationError("empty client JID given in configuration")
        if not self.recipients:
            raise ConfigurationError("no recipient JIDs given in configuration")

        client_jid = parse_jid(self.jid, "client")
        recipients = [parse_jid(r, "recipient") for r in self.recipients]

        loop = asyncio.get_running_loop()
        started = loop.create_future()

        def fail(reason):
            if not started.done():
                started.set_exception(ConnectionError(f"connection to XMPP server failed: {reason}"))

        def on_session_start(event):
            if not started.done():
                started.set_result(None)

        client = ClientXMPP(str(client_jid), self.password)
        self._configure_transport(client)
        client.add_event_handler("session_start", on_session_start)
        client.add_event_handler("failed_auth", lambda event: fail("authentication failed"))
        client.add_event_handler("connection_failed", lambda error: fail(error))
        client.add_event_handler("disconnected", self._on_disconnected)

        async with self._lock:
            client.connect()
            try:
                await asyncio.wait_for(started, timeout=self.timeout)
            except BaseException:
                client.abort()
                raise

            self.client = client
            self.connected = True

            # Initial presence, then presence to each recipient (joins group chats)
            client.send_presence()
            for recipient in recipients:
                client.send_presence(pto=recipient.full)

        log.info(f"[XMPPDestination] Connected as {client_jid.bare} for {len(recipients)} recipient(s)")

    def _on_disconnected(self, event) -> None:
        if self.connected:
            log.warning("[XMPPDestination] Disconnected from XMPP server")
        self.connected = False

    async def push_messages(self, messages: List[Message]) -> None:
        async with self._lock:
            if self.client is None:
                raise DeliveryError("XMPP destination is not initialized")
            if not self.connected:
                raise DeliveryError("XMPP session is not connected")

            for message in messages:
                for value in self.recipients:
                    recipient = JID(value)
                    if recipient.resource:
                        self.client.send_message(mto=recipient.bare, mbody=message.content, mtype="groupchat")
                    else:
                        self.client.send_message(mto=recipient.full, mbody=message.content, mtype="chat")

        log.debug(f"[XMPPDestination] Sent {len(messages)} message(s) to {len(self.recipients)} recipient(s)")

    async def close(self) -> None:
        async with self._lock:
            if self.client is None:
                return
            client, self.client = self.client, None
            self.connected = False
            await client.disconnect()


register_destination("xmpp", XMPPDestination)
