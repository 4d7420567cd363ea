"""CLI interface for the AeroML training wizard."""

import asyncio
from pathlib import Path

import typer

from .client import ApiClient
from .config import settings
from .exceptions import AeroMLError
from .observability import setup_structured_logging
from .training import LogEvent, TrainingController, TrainingStatus
from .wizard import WizardStateMachine

app = typer.Typer(help="Train and deploy AeroML models from a prompt and a dataset")


def _print_event(event: LogEvent) -> None:
    print(event.render())


@app.command()
def validate(
    dataset: Path = typer.Argument(..., exists=True, dir_okay=False, help="CSV/TSV dataset to validate"),
    prompt: str = typer.Option(..., "--prompt", "-p", help="What the model should do"),
) -> None:
    """Validate a dataset against a prompt and show its eligibility."""
    setup_structured_logging(settings.logging.level, settings.logging.json_output)

    async def _validate() -> str:
        async with ApiClient() as api:
            try:
                result = await api.validate_dataset(dataset.name, dataset.read_bytes(), prompt)
            except AeroMLError as e:
                return f"Error: {e}"

        lines = [
            f"Confidence: {result.confidence_score:g} ({result.tier.value})",
            f"Suggested target: {result.suggested_target_column or '(none)'}",
            f"Excluded columns: {', '.join(result.excluded_columns) or '(none)'}",
        ]
        lines.extend(f"Issue: {issue}" for issue in result.issues)
        if result.message:
            lines.append(result.message)
        return "\n".join(lines)

    print(asyncio.run(_validate()))


@app.command()
def train(
    dataset: Path = typer.Argument(..., exists=True, dir_okay=False, help="CSV/TSV dataset to train on"),
    prompt: str = typer.Option(..., "--prompt", "-p", help="What the model should do"),
    user_id: str = typer.Option(..., "--user-id", "-u", help="Account the model belongs to"),
    target: str = typer.Option(None, "--target", "-t", help="Target column (defaults to the suggested one)"),
    proceed_anyway: bool = typer.Option(False, "--proceed-anyway", help="Train on a conditionally eligible dataset"),
    timeout: float = typer.Option(None, "--timeout", help="Seconds to wait for training to finish"),
) -> None:
    """Run the whole wizard headless: validate, train, and print deployment links."""
    setup_structured_logging(settings.logging.level, settings.logging.json_output)

    async def _train() -> int:
        async with ApiClient() as api:
            controller = TrainingController(api, timeout_seconds=timeout, on_event=_print_event)
            wizard = WizardStateMachine(api, controller, user_id=user_id, api_settings=api.api)
            try:
                wizard.submit_prompt(prompt)
                wizard.load_dataset(dataset.name, dataset.read_bytes())
                result = await wizard.validate()
                print(f"Confidence: {result.confidence_score:g} ({result.tier.value})")
                if target:
                    wizard.select_target(target)

                handoff = wizard.advance_to_training(proceed_anyway=proceed_anyway)
                wizard.enter_training(handoff)
                overview = wizard.training_overview()
                print(overview.summary)
                print(f"Model: {overview.model_name} | Epochs: {overview.total_epochs}")

                session = await wizard.start_training()
                if session.status != TrainingStatus.COMPLETED:
                    print(f"Error: {session.failure_message}")
                    return 1

                deploy = wizard.advance_to_deploy()
                print(f"Session: {deploy.session_id}")
                print(f"Model report: {deploy.model_report_url}")
                print(f"Playground: {deploy.playground_url}")
                print(f"Model info: {deploy.model_info_url}")
                return 0
            except AeroMLError as e:
                print(f"Error: {e}")
                return 1
            finally:
                wizard.close()

    code = asyncio.run(_train())
    if code:
        raise typer.Exit(code)


@app.command()
def config() -> None:
    """Show current configuration."""
    print(f"API URL: {settings.api.base_url}")
    print(f"API token: {'(set)' if settings.api.api_token else '(none)'}")
    print(f"Validate path: {settings.api.validate_path}")
    print(f"Train path: {settings.api.train_path}")
    print(f"Training timeout: {settings.training.timeout_seconds:g}s")
    print(f"Log level: {settings.logging.level}")


if __name__ == "__main__":
    app()
