"""Rich results table printed at the end of a build, test or verilog run.

    Target         Kind         State    Stage  Time
    Fifo_tb        unit         passed          1.2s
    Counter_tb     integration  failed   run    0.8s
    Adder_tb       integration  skipped
"""

from rich.console import Console
from rich.table import Table
from rich.text import Text

from dolly.build.pipeline import PipelineOutcome, TargetState

_STATE_STYLES = {
    TargetState.PASSED: "bold green",
    TargetState.FAILED: "bold red",
}


def build_summary_table(outcome: PipelineOutcome) -> Table:
    table = Table(title=f"dolly {outcome.mode}", show_edge=False, pad_edge=False)
    table.add_column("Target", style="bold")
    table.add_column("Kind")
    table.add_column("State")
    table.add_column("Stage")
    table.add_column("Time", justify="right")

    for result in outcome.results:
        state = Text(result.state.value, style=_STATE_STYLES.get(result.state, ""))
        table.add_row(
            result.target.name,
            str(result.target.kind),
            state,
            result.failed_stage,
            f"{result.elapsed:.1f}s",
        )

    for target in outcome.skipped:
        table.add_row(target.name, str(target.kind), Text("skipped", style="dim"), "", "")

    return table


def summary_line(outcome: PipelineOutcome) -> Text:
    parts = [f"{outcome.passed_count} passed", f"{outcome.failed_count} failed"]
    if outcome.skipped:
        parts.append(f"{len(outcome.skipped)} skipped")
    style = "bold green" if outcome.all_passed else "bold red"
    return Text(", ".join(parts) + f" in {outcome.total_elapsed:.2f}s", style=style)


def print_summary(outcome: PipelineOutcome, console: Console | None = None) -> None:
    console = console if console is not None else Console()
    if outcome.results or outcome.skipped:
        console.print(build_summary_table(outcome))
    console.print(summary_line(outcome))
