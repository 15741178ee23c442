#!/usr/bin/env python3
"""
Fire a test notification at a running webhook gateway.

Usage:
    python -m webhook_gateway.examples.send_test_alert localhost:8080/alerts
    python -m webhook_gateway.examples.send_test_alert localhost:8080/alerts --secret 1234
    python -m webhook_gateway.examples.send_test_alert localhost:8080/am --kind alertmanager --count 3
    python -m webhook_gateway.examples.send_test_alert localhost:8080/cf --kind cloudflare --secret 1234
    python -m webhook_gateway.examples.send_test_alert localhost:8080/alerts --resolved --dry-run

The secret is sent the way each source expects it: as a Bearer token for
Grafana and Alertmanager, and in the cf-webhook-auth header for Cloudflare.
"""

import argparse
import json
import sys
from datetime import datetime, timezone
from typing import Dict, Optional

import requests

KINDS = ("grafana", "alertmanager", "cloudflare")


def build_alert(alertname, severity, status, instance="server-1:9090"):
    """Build a single alert entry, as found in Grafana and Alertmanager payloads."""
    now = datetime.now(timezone.utc).isoformat()

    return {
        "status": status,
        "labels": {
            "alertname": alertname,
            "severity": severity,
            "instance": instance,
        },
        "annotations": {
            "summary": f"{alertname} on {instance}",
            "description": f"{alertname} has been detected on {instance}. Severity: {severity}.",
        },
        "startsAt": now,
        "endsAt": "0001-01-01T00:00:00Z" if status == "firing" else now,
        "generatorURL": f"http://prometheus:9090/graph?g0.expr={alertname.lower()}",
        "fingerprint": f"{alertname.lower()}_{instance.replace(':', '_')}",
    }


def build_payload(kind, status="firing", alert_name="HighMemoryUsage", severity="critical", count=1):
    """Build a test payload for the given source kind."""
    if kind not in KINDS:
        raise ValueError(f"kind must be one of {KINDS}, got {kind!r}")

    if kind == "cloudflare":
        return {"text": f"{alert_name} is {status} (severity: {severity})"}

    alerts = []
    for i in range(count):
        instance = "server-1:9090" if count == 1 else f"server-{i + 1}:9090"
        alerts.append(build_alert(alert_name, severity, status, instance))

    payload = {
        "receiver": "webhook-gateway",
        "status": status,
        "alerts": alerts,
        "groupLabels": {"alertname": alert_name},
        "commonLabels": {"alertname": alert_name, "severity": severity},
        "commonAnnotations": {},
        "externalURL": "http://alertmanager:9093",
        "groupKey": f"{{}}:{{alertname=\"{alert_name}\"}}",
        "version": "4",
    }

    if kind == "grafana":
        payload.update({
            "orgId": 1,
            "state": "alerting" if status == "firing" else "ok",
            "title": f"[{status.upper()}:{count}] {alert_name}",
            "message": "\n".join(a["annotations"]["summary"] for a in alerts),
        })

    return payload


def build_headers(kind, secret: Optional[str] = None) -> Dict[str, str]:
    headers = {"Content-Type": "application/json"}
    if not secret:
        return headers
    if kind == "cloudflare":
        headers["cf-webhook-auth"] = secret
    else:
        headers["Authorization"] = f"Bearer {secret}"
    return headers


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Fire a test notification at a webhook gateway",
    )
    parser.add_argument(
        "target",
        help="URL or host:port/path of the gateway endpoint (e.g. localhost:8080/alerts)",
    )
    parser.add_argument(
        "--kind", default="grafana", choices=KINDS,
        help="Payload format to send (default: grafana)",
    )
    parser.add_argument(
        "--secret", default=None,
        help="Gateway secret to authenticate with",
    )
    parser.add_argument(
        "--resolved", action="store_true",
        help="Send a resolved notification instead of firing",
    )
    parser.add_argument(
        "--severity", default="critical",
        choices=["critical", "warning", "info"],
        help="Alert severity (default: critical)",
    )
    parser.add_argument(
        "--alert-name", default="HighMemoryUsage",
        help="Alert name (default: HighMemoryUsage)",
    )
    parser.add_argument(
        "--count", type=int, default=1,
        help="Number of alerts to include in one payload (default: 1)",
    )
    parser.add_argument(
        "--dry-run", action="store_true",
        help="Print the payload without sending it",
    )

    args = parser.parse_args(argv)

    url = args.target
    if not url.startswith("http"):
        url = f"http://{url}"

    status = "resolved" if args.resolved else "firing"
    payload = build_payload(args.kind, status, args.alert_name, args.severity, args.count)

    if args.dry_run:
        print(json.dumps(payload, indent=2))
        return 0

    print(f"Sending {status} {args.kind} notification to {url}")
    if args.secret:
        print(f"  Auth: ***{args.secret[-4:]}")

    try:
        response = requests.post(url, json=payload, headers=build_headers(args.kind, args.secret), timeout=10)
    except requests.exceptions.RequestException as e:
        print(f"  Connection failed: {e}")
        return 1

    if 200 <= response.status_code < 300:
        print(f"  OK ({response.status_code})")
        return 0

    print(f"  Failed ({response.status_code}): {response.text.strip()}")
    return 1


if __name__ == "__main__":
    sys.exit(main())
