from __future__ import annotations

import json

import click
from flask import Flask

from ..common.auth import admin_required
from ..common.responses import error_response, ok
from ..core.exceptions import DomainError
from ..container import Container


def register(app: Flask, container: Container) -> None:
    @app.route("/api/diagnostics/consistency", methods=["GET"], endpoint="consistency_scan")
    @admin_required
    def consistency_scan():
        try:
            return ok(container.consistency_checker.report().to_dict())
        except DomainError as e:
            return error_response(e)

    @app.cli.command("consistency-scan")
    @click.option("--json", "as_json", is_flag=True, help="Print the full report as JSON.")
    def consistency_scan_command(as_json: bool) -> None:
        """Scan visitors, change requests and the audit log for anomalies."""
        report = container.consistency_checker.report()
        if as_json:
            click.echo(json.dumps(report.to_dict(), indent=2, ensure_ascii=False))
        else:
            click.echo(f"anomalies={len(report.anomalies)} counts={report.counts}")
            for a in report.anomalies:
                click.echo(f"- {a.kind}: {a}")
        if not report.is_clean:
            raise SystemExit(1)
