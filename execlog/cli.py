import shlex

import click

from execlog.models.enums import Severity

_SEVERITY_ORDER = [Severity.DEBUG, Severity.INFO, Severity.WARN]


@click.group()
def main() -> None:
    """execlog - inspect requestor event logs."""
    from execlog.log import setup_logging
    from execlog.settings import get_settings

    setup_logging(get_settings().log_level)


def _load(path: str):
    from execlog.query import LogQuery

    query = LogQuery.from_file(path)
    if query.parse_errors:
        click.echo(f"warning: skipped {len(query.parse_errors)} malformed line(s)", err=True)
    return query


def _operation_options(func):
    func = click.option("-i", "--index", "cmd_index", required=True, type=int, help="Command index.")(func)
    func = click.option("-t", "--task", "task_id", required=True, help="Task id.")(func)
    func = click.option("-a", "--agreement", "agreement_id", required=True, help="Agreement id.")(func)
    return func


def _echo_outcome(outcome) -> None:
    from execlog.exit_status import SIGNED_THRESHOLD, as_signed

    click.echo(f"command: {shlex.join([outcome.entry_point, *outcome.args])}")
    click.echo(f"success: {'yes' if outcome.success else 'no'}")
    if outcome.exit_message:
        note = ""
        if outcome.possibly_negative_exit:
            note = f" (above {SIGNED_THRESHOLD}: possibly {as_signed(outcome.exit_code)} as a signed exit status)"
        click.echo(f"exit: {outcome.exit_message}{note}")
    _echo_stream("stdout", outcome.captured_stdout)
    _echo_stream("stderr", outcome.captured_stderr)


def _echo_stream(name: str, data: bytes) -> None:
    click.echo(f"--- {name} ---")
    text = data.decode("utf-8", errors="replace")
    if text:
        click.echo(text, nl=not text.endswith("\n"))


# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------


@main.command()
@click.argument("log_file", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--min-severity",
    type=click.Choice([s.value for s in _SEVERITY_ORDER]),
    default=Severity.INFO.value,
    help="Lowest severity to print (default: INFO).",
)
def summary(log_file: str, min_severity: str) -> None:
    """Print one line per command run or file transfer."""
    from execlog.aggregator import DuplicateOperationError, SummaryAggregator
    from execlog.settings import get_settings

    threshold = _SEVERITY_ORDER.index(Severity(min_severity))
    aggregator = SummaryAggregator(stderr_hint_bytes=get_settings().stderr_hint_bytes)

    for record in _load(log_file).records:
        try:
            line = aggregator.feed(record)
        except DuplicateOperationError as exc:
            click.echo(f"WARN     | {exc}")
            continue
        if line is not None and _SEVERITY_ORDER.index(line.severity) >= threshold:
            click.echo(f"{line.severity.value: <8} | {line.text}")

    for op in aggregator.open_operations():
        click.echo(f"OPEN     | task {op.key.task_id} #{op.key.cmd_index} {op.kind} {op.descriptor}")


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


@main.command()
@click.argument("log_file", type=click.Path(exists=True, dir_okay=False))
@_operation_options
def outcome(log_file: str, agreement_id: str, task_id: str, cmd_index: int) -> None:
    """Show the output and exit status of one command."""
    from execlog.query import LogQueryError, OperationIncompleteError

    query = _load(log_file)
    try:
        result = query.command_outcome(agreement_id, task_id, cmd_index)
    except OperationIncompleteError as exc:
        _echo_outcome(exc.partial)
        raise click.ClickException(str(exc)) from exc
    except LogQueryError as exc:
        raise click.ClickException(str(exc)) from exc
    _echo_outcome(result)


@main.command()
@click.argument("log_file", type=click.Path(exists=True, dir_okay=False))
@_operation_options
def transfer(log_file: str, agreement_id: str, task_id: str, cmd_index: int) -> None:
    """Show the source, target and result of one file transfer."""
    from execlog.query import LogQueryError

    try:
        result = _load(log_file).transfer_outcome(agreement_id, task_id, cmd_index)
    except LogQueryError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"from: {result.source}")
    click.echo(f"to: {result.target}")
    click.echo(f"success: {'yes' if result.success else 'no'}")


@main.command()
@click.argument("log_file", type=click.Path(exists=True, dir_okay=False))
def failures(log_file: str) -> None:
    """List every command that finished unsuccessfully, with its stderr."""
    failed = _load(log_file).failed_commands()
    if not failed:
        click.echo("No failed commands.")
        return
    for item in failed:
        click.echo(f"== agreement {item.agreement_id} task {item.task_id} #{item.cmd_index}")
        _echo_outcome(item)
