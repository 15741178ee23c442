"""Grafana Source - Parses Grafana alerting webhook notifications.

Grafana contact points of type "webhook" POST a JSON payload containing the
rendered notification title and message, along with the raw alert list.

Grafana webhook docs:
https://grafana.com/docs/grafana/latest/alerting/configure-notifications/manage-contact-points/integrations/webhook-notifier/
"""

import logging
from string import Template
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from starlette.requests import Request

from webhook_gateway.auth import verify_bearer_token
from webhook_gateway.config import parse_adapter_config
from webhook_gateway.errors import ConfigurationError, ParseError
from webhook_gateway.gateway import Message, Source
from webhook_gateway.registry import register_source

log = logging.getLogger(__name__)


class GrafanaAlert(BaseModel):
    status: str = ""
    labels: Dict[str, str] = Field(default_factory=dict)
    annotations: Dict[str, str] = Field(default_factory=dict)
    starts_at: str = Field(default="", alias="startsAt")
    ends_at: str = Field(default="", alias="endsAt")
    generator_url: str = Field(default="", alias="generatorURL")
    fingerprint: str = ""
    silence_url: str = Field(default="", alias="silenceURL")
    dashboard_url: str = Field(default="", alias="dashboardURL")
    panel_url: str = Field(default="", alias="panelURL")
    values: Optional[Dict[str, Any]] = None


class GrafanaPayload(BaseModel):
    """
    Grafana webhook notification payload.

    Only the scalar fields are available to message templates.
    """

    receiver: str = ""
    status: str = ""
    org_id: int = Field(default=0, alias="orgId")
    alerts: List[GrafanaAlert] = Field(default_factory=list)
    group_labels: Dict[str, str] = Field(default_factory=dict, alias="groupLabels")
    common_labels: Dict[str, str] = Field(default_factory=dict, alias="commonLabels")
    common_annotations: Dict[str, str] = Field(default_factory=dict, alias="commonAnnotations")
    external_url: str = Field(default="", alias="externalURL")
    version: str = ""
    group_key: str = Field(default="", alias="groupKey")
    truncated_alerts: int = Field(default=0, alias="truncatedAlerts")
    title: str = ""
    state: str = ""
    message: str = ""

    def template_fields(self) -> Dict[str, Any]:
        return {
            "receiver": self.receiver,
            "status": self.status,
            "org_id": self.org_id,
            "external_url": self.external_url,
            "version": self.version,
            "group_key": self.group_key,
            "truncated_alerts": self.truncated_alerts,
            "title": self.title,
            "state": self.state,
            "message": self.message,
        }


TEMPLATE_FIELDS = frozenset(GrafanaPayload().template_fields())


class GrafanaConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    template: Optional[str] = None


def compile_template(text: str) -> Template:
    """
    Compile a message template, checking it only refers to known payload fields.

    Raises:
        ConfigurationError: if the template is malformed or refers to unknown fields
    """
    template = Template(text)
    if not template.is_valid():
        raise ConfigurationError(f"failed parsing message template: invalid placeholder in {text!r}")

    unknown = sorted(set(template.get_identifiers()) - TEMPLATE_FIELDS)
    if unknown:
        raise ConfigurationError(
            f"failed parsing message template: unknown fields {unknown}, "
            f"expected any of {sorted(TEMPLATE_FIELDS)}"
        )
    return template


class GrafanaSource(Source):
    """
    Grafana alerting webhook source.

    Incoming requests must carry "Authorization: Bearer <secret>" when the
    gateway has a secret configured. Grafana sends this when the contact
    point's "Authorization Header - Credentials" is set to the secret.

    Messages are rendered from the optional template (string.Template syntax,
    e.g. "[$status] $title"), or from the title and message fields otherwise.

    Args:
        template: Optional message template
    """

    def __init__(self, template: Optional[str] = None):
        self.template: Optional[Template] = compile_template(template) if template else None

    def configure(self, data: Dict[str, Any]) -> None:
        conf = parse_adapter_config(GrafanaConfig, data, "source", "grafana")
        if conf.template:
            self.template = compile_template(conf.template)

    async def init(self) -> None:
        pass

    async def parse_http(self, request: Request) -> List[Message]:
        verify_bearer_token(request)

        body = await request.body()
        try:
            payload = GrafanaPayload.model_validate_json(body)
        except ValidationError as e:
            raise ParseError(f"failed parsing request: {e.errors()[0]['msg']}") from e

        if self.template is not None:
            content = self.template.substitute(payload.template_fields())
        else:
            content = "\n".join(part for part in (payload.title, payload.message) if part)

        if not content:
            raise ParseError("no message content found")

        log.debug(f"[GrafanaSource] Parsed {payload.status or 'unknown'} notification for {payload.receiver}")
        return [Message(content=content)]


register_source("grafana", GrafanaSource)
