"""Audit a project's dependencies."""

import sys
from pathlib import Path

import click
from rich.table import Table

from dialectic.commands import PACKAGE_MANAGER_CHOICES, RichCommand, emit_json
from dialectic.pipeline.ui import console, print_header, severity_label
from dialectic.utils.error_handler import handle_exceptions
from dialectic.utils.exit_codes import ExitCodes


@click.command(cls=RichCommand)
@handle_exceptions
@click.option("--project", default=".", type=click.Path(exists=True, file_okay=False), help="Project root containing package.json")
@click.option("--package-manager", type=click.Choice(PACKAGE_MANAGER_CHOICES), default="auto", help="Package manager (default: detect from lockfile)")
@click.option("--skip-deprecated", is_flag=True, help="Skip the per-package registry deprecation check")
@click.option("--out", type=click.Path(dir_okay=False), help="Also write the snapshot JSON to this file")
@click.option("--json", "as_json", is_flag=True, help="Print the snapshot as JSON")
def audit(project, package_manager, skip_deprecated, out, as_json):
    """Scan for vulnerabilities, outdated and deprecated packages.

    Runs the package manager's own audit and outdated reports, plus an
    `npm view` lookup per declared dependency to find deprecations. A tool
    that is missing or fails contributes an empty section; the audit itself
    does not fail.

    The JSON snapshot is the input of `dialectic plan`.

    \b
    Examples:
      dialectic audit --project ./app --json > snapshot.json
      dialectic audit --skip-deprecated       # faster, no registry calls

    \b
    Exit Codes:
      0 = Success
      2 = Critical vulnerabilities found"""
    from dialectic.auditor import audit_dependencies
    from dialectic.config_runtime import load_runtime_config
    from dialectic.models import Severity
    from dialectic.utils.helpers import save_json_file

    cfg = load_runtime_config(project)
    snapshot = audit_dependencies(
        project,
        package_manager=package_manager,
        check_deprecated=not skip_deprecated,
        audit_timeout=cfg["timeouts"]["audit"],
        npm_view_timeout=cfg["timeouts"]["npm_view"],
    )

    if out:
        save_json_file(snapshot.to_dict(), Path(out))

    if as_json:
        emit_json(snapshot)
    else:
        print_header("DEPENDENCY AUDIT")
        console.print(snapshot.summary, markup=False, highlight=False)

        if snapshot.vulnerabilities:
            table = Table(title="Vulnerabilities", show_lines=False)
            table.add_column("Severity")
            table.add_column("Package", style="cmd")
            table.add_column("Installed")
            table.add_column("Patched")
            table.add_column("Advisory")
            for vuln in snapshot.vulnerabilities:
                table.add_row(
                    severity_label(vuln.severity),
                    vuln.package,
                    vuln.current_version,
                    vuln.patched_versions,
                    vuln.title or vuln.id,
                )
            console.print(table)

        if snapshot.deprecated:
            console.print("\n[warning]Deprecated:[/warning]")
            for dep in snapshot.deprecated:
                hint = f" -> {dep.replacement}" if dep.replacement else ""
                console.print(f"  {dep.name}@{dep.version}{hint}", markup=False)

    if any(v.severity is Severity.CRITICAL for v in snapshot.vulnerabilities):
        sys.exit(ExitCodes.CRITICAL_SEVERITY)
