"""Alertmanager Source - Parses Prometheus Alertmanager webhook payloads.

Alertmanager groups alerts into a single webhook POST; this source emits one
message per alert in the group.

Alertmanager webhook docs:
https://prometheus.io/docs/alerting/latest/configuration/#webhook_config
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

TEMPLATE_FIELDS = frozenset({
    "status", "alertname", "severity", "instance", "summary", "description",
    "starts_at", "ends_at", "generator_url", "fingerprint", "receiver", "external_url",
})


class AlertmanagerAlert(BaseModel):
    status: str = "unknown"
    labels: Dict[str, str] = Field(default_factory=dict)
    annotations: Dict[str, str] = Field(default_factory=dict)
    starts_at: str = Field(default="", alias="startsAt")
    ends_at: str = Field(default="", alias="endsAt")
    generator_url: str = Field(default="", alias="generatorURL")
    fingerprint: str = ""


class AlertmanagerPayload(BaseModel):
    receiver: str = ""
    status: str = ""
    alerts: List[AlertmanagerAlert] = Field(default_factory=list)
    group_labels: Dict[str, str] = Field(default_factory=dict, alias="groupLabels")
    common_labels: Dict[str, str] = Field(default_factory=dict, alias="commonLabels")
    common_annotations: Dict[str, str] = Field(default_factory=dict, alias="commonAnnotations")
    external_url: str = Field(default="", alias="externalURL")
    group_key: str = Field(default="", alias="groupKey")


class AlertmanagerConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    template: Optional[str] = None


class AlertmanagerSource(Source):
    """
    Prometheus Alertmanager webhook source.

    Requests must carry "Authorization: Bearer <secret>" when the gateway has
    a secret configured (Alertmanager's http_config.authorization.credentials).

    Each alert becomes one message. Without a template, messages read
    "[FIRING] HighMemoryUsage: Memory usage is above 90%", using the summary
    annotation or, failing that, the description.

    Args:
        template: Optional per-alert template in string.Template syntax, e.g.
            "$alertname on $instance is $status"
    """

    def __init__(self, template: Optional[str] = None):
        self.template: Optional[Template] = self._compile(template) if template else None

    @staticmethod
    def _compile(text: str) -> Template:
        template = Template(text)
        if not template.is_valid():
            raise ConfigurationError(f"failed parsing message template: invalid placeholder in {text!r}")
        unknown = sorted(set(template.get_identifiers()) - TEMPLATE_FIELDS)
        if unknown:
            raise ConfigurationError(f"failed parsing message template: unknown fields {unknown}")
        return template

    def configure(self, data: Dict[str, Any]) -> None:
        conf = parse_adapter_config(AlertmanagerConfig, data, "source", "alertmanager")
        if conf.template:
            self.template = self._compile(conf.template)

    async def init(self) -> None:
        pass

    async def parse_http(self, request: Request) -> List[Message]:
        verify_bearer_token(request)

        body = await request.body()
        try:
            payload = AlertmanagerPayload.model_validate_json(body)
        except ValidationError as e:
            raise ParseError(f"failed parsing request: {e.errors()[0]['msg']}") from e

        messages = [Message(content=self._render(payload, alert)) for alert in payload.alerts]
        log.debug(f"[AlertmanagerSource] Parsed {len(messages)} alert(s) for {payload.receiver}")
        return messages

    def _render(self, payload: AlertmanagerPayload, alert: AlertmanagerAlert) -> str:
        labels = {**payload.common_labels, **alert.labels}
        annotations = {**payload.common_annotations, **alert.annotations}

        # Text: prefer summary, fall back to description
        summary = annotations.get("summary", "")
        description = annotations.get("description", "")
        alertname = labels.get("alertname", "unknown")

        if self.template is None:
            text = summary or description
            line = f"[{alert.status.upper()}] {alertname}"
            return f"{line}: {text}" if text else line

        return self.template.substitute(
            status=alert.status,
            alertname=alertname,
            severity=labels.get("severity", ""),
            instance=labels.get("instance", ""),
            summary=summary,
            description=description,
            starts_at=alert.starts_at,
            ends_at=alert.ends_at,
            generator_url=alert.generator_url,
            fingerprint=alert.fingerprint,
            receiver=payload.receiver,
            external_url=payload.external_url,
        )


register_source("alertmanager", AlertmanagerSource)
