"""Assess the risk of one upgrade proposal."""

import click

from dialectic.commands import RichCommand, emit_json
from dialectic.pipeline.ui import change_label, console, print_header
from dialectic.utils.error_handler import handle_exceptions


@click.command(cls=RichCommand)
@handle_exceptions
@click.option("--proposal", "proposal_file", required=True, type=click.File("r", encoding="utf-8"), help="Upgrade proposal JSON file, or - for stdin")
@click.option("--json", "as_json", is_flag=True, help="Print the assessment as JSON")
def assess(proposal_file, as_json):
    """Ask the risk service for a pessimist view of one proposal.

    Needs an API key (ZHIPU_API_KEY or DIALECTIC_RISK_API_KEY). Without one,
    or if the service fails, the assessment still returns the proposal facts
    with a note to decide from the version type and security fixes.

    \b
    Examples:
      dialectic assess --proposal proposal.json --json"""
    from dialectic.config_runtime import load_runtime_config
    from dialectic.errors import ProposalError
    from dialectic.risk_assessor import RiskConfig, assess_risk_from_json

    config = RiskConfig.from_runtime_config(load_runtime_config())
    try:
        assessment = assess_risk_from_json(proposal_file.read(), config)
    except ProposalError as e:
        raise click.ClickException(f"Invalid upgrade proposal: {e}") from e

    if as_json:
        emit_json(assessment)
        return

    print_header(f"RISK: {assessment.package} {assessment.from_version} -> {assessment.to_version}")
    console.print(f"Upgrade type: {change_label(assessment.upgrade_type)}")
    console.print(f"Security fixes: {', '.join(assessment.security_fixes) or 'none'}")
    if assessment.caution:
        console.print(f"[warning]Caution:[/warning] {assessment.caution}", highlight=False)

    view = assessment.pessimist_view
    if view:
        console.print(
            f"\nPessimist score: [bold]{view.overall_score:g}/100[/bold] "
            f"(confidence {view.confidence:.2f}), recommends [bold]{view.recommendation}[/bold]"
        )
        console.print(view.summary, markup=False)
        for factor in view.factors:
            console.print(f"  - {factor.factor} ({factor.score:g}): {factor.reasoning}", markup=False)
    console.print(f"\n[dim]{assessment.note}[/dim]")
