"""Tests for the Grafana alerting webhook source."""

import json

import pytest

from webhook_gateway.context import secret_context
from webhook_gateway.errors import AuthenticationError, ConfigurationError, ParseError
from webhook_gateway.gateway import Message
from webhook_gateway.sources.grafana import GrafanaSource, TEMPLATE_FIELDS, compile_template


GRAFANA_PAYLOAD = {
    "receiver": "chat",
    "status": "firing",
    "orgId": 1,
    "alerts": [
        {
            "status": "firing",
            "labels": {"alertname": "DiskFull", "instance": "db-1"},
            "annotations": {"summary": "Disk is 95% full"},
            "startsAt": "2024-01-01T00:00:00Z",
            "endsAt": "0001-01-01T00:00:00Z",
            "generatorURL": "http://grafana/alerting/1/edit",
            "fingerprint": "abcdef",
            "values": {"A": 95.2},
        }
    ],
    "groupLabels": {"alertname": "DiskFull"},
    "commonLabels": {"alertname": "DiskFull"},
    "commonAnnotations": {},
    "externalURL": "http://grafana/",
    "version": "1",
    "groupKey": "{}:{alertname=\"DiskFull\"}",
    "truncatedAlerts": 0,
    "title": "[FIRING:1] DiskFull",
    "state": "alerting",
    "message": "Disk is 95% full on db-1",
}


class TestGrafanaTemplates:

    def test_no_template(self):
        assert GrafanaSource().template is None

    def test_valid_template(self):
        source = GrafanaSource(template="Hello $receiver!")

        assert source.template is not None

    @pytest.mark.parametrize("text", ["Hello $", "Cost: $5", "${unclosed"])
    def test_malformed_template(self, text):
        with pytest.raises(ConfigurationError, match="failed parsing message template"):
            GrafanaSource(template=text)

    def test_unknown_field(self):
        with pytest.raises(ConfigurationError, match=r"unknown fields \['name'\]"):
            compile_template("Hello $name!")

    def test_escaped_dollar_allowed(self):
        template = compile_template("$$5 spent on $title")

        assert template.get_identifiers() == ["title"]
        assert template.substitute(title="coffee") == "$5 spent on coffee"

    def test_every_documented_field_accepted(self):
        compile_template(" ".join(f"${name}" for name in sorted(TEMPLATE_FIELDS)))


class TestGrafanaConfigure:

    def test_no_data(self):
        source = GrafanaSource()
        source.configure({})

        assert source.template is None

    def test_template_field(self):
        source = GrafanaSource()
        source.configure({"template": "[$status] $title"})

        assert source.template.template == "[$status] $title"

    def test_invalid_template_field(self):
        with pytest.raises(ConfigurationError, match="failed parsing message template"):
            GrafanaSource().configure({"template": "$here"})

    def test_unknown_keys_rejected(self):
        with pytest.raises(ConfigurationError, match="failed parsing configuration for source 'grafana'"):
            GrafanaSource().configure({"foo": "bar"})

    def test_invalid_type(self):
        with pytest.raises(ConfigurationError):
            GrafanaSource().configure({"template": 42})


class TestGrafanaParseHTTP:

    @pytest.mark.asyncio
    async def test_missing_authorization_header(self, make_request):
        with secret_context("1234"):
            with pytest.raises(AuthenticationError, match="^Authorization header not found$"):
                await GrafanaSource().parse_http(make_request())

    @pytest.mark.asyncio
    async def test_malformed_bearer_token(self, make_request):
        request = make_request(headers={"Authorization": "1234"})

        with secret_context("1234"):
            with pytest.raises(AuthenticationError, match="^invalid Bearer token$"):
                await GrafanaSource().parse_http(request)

    @pytest.mark.asyncio
    async def test_incorrect_bearer_token(self, make_request):
        request = make_request(headers={"Authorization": "Bearer 123"})

        with secret_context("1234"):
            with pytest.raises(AuthenticationError, match="^invalid Bearer token$"):
                await GrafanaSource().parse_http(request)

    @pytest.mark.asyncio
    async def test_authorization_success_reaches_parsing(self, make_request):
        request = make_request(headers={"Authorization": "Bearer 1234"})

        with secret_context("1234"):
            with pytest.raises(ParseError, match="^failed parsing request:"):
                await GrafanaSource().parse_http(request)

    @pytest.mark.asyncio
    async def test_authorization_passthrough_without_secret(self, make_request):
        request = make_request(headers={"Authorization": "Bearer foobar"})

        with pytest.raises(ParseError, match="^failed parsing request:"):
            await GrafanaSource().parse_http(request)

    @pytest.mark.asyncio
    async def test_invalid_json_body(self, make_request):
        with pytest.raises(ParseError, match="^failed parsing request:"):
            await GrafanaSource().parse_http(make_request(body="{what?}"))

    @pytest.mark.asyncio
    async def test_non_object_body(self, make_request):
        with pytest.raises(ParseError, match="^failed parsing request:"):
            await GrafanaSource().parse_http(make_request(body="[1, 2, 3]"))

    @pytest.mark.asyncio
    async def test_no_payload_content(self, make_request):
        with pytest.raises(ParseError, match="^no message content found$"):
            await GrafanaSource().parse_http(make_request(body='{"status": "firing"}'))

    @pytest.mark.asyncio
    async def test_message_from_template(self, make_request):
        source = GrafanaSource(template="Alert! Alert! $status")

        messages = await source.parse_http(make_request(body='{"status": "firing"}'))

        assert messages == [Message(content="Alert! Alert! firing")]

    @pytest.mark.asyncio
    async def test_message_from_content(self, make_request):
        messages = await GrafanaSource().parse_http(make_request(body='{"title": "Hello", "message": "World"}'))

        assert messages == [Message(content="Hello\nWorld")]

    @pytest.mark.asyncio
    async def test_message_from_title_only(self, make_request):
        messages = await GrafanaSource().parse_http(make_request(body='{"title": "Hello"}'))

        assert messages == [Message(content="Hello")]

    @pytest.mark.asyncio
    async def test_full_payload(self, make_request):
        source = GrafanaSource(template="[$state] $title ($external_url, org $org_id)")
        request = make_request(
            body=json.dumps(GRAFANA_PAYLOAD),
            headers={"Authorization": "Bearer 1234"},
        )

        with secret_context("1234"):
            messages = await source.parse_http(request)

        assert messages == [Message(content="[alerting] [FIRING:1] DiskFull (http://grafana/, org 1)")]
