from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Dict, List, Optional

import typer

from . import __version__
from .chatbot_engine import GREETING, ChatbotEngine
from .classifier import classify
from .config import Settings, get_settings
from .errors import DatasetUnavailable
from .logging_config import bind_session, configure_logging
from .pipeline import evaluate
from .rules_loader import DatasetStore
from .schema import Recommendation, TurnResult
from .validator import check_dataset

app = typer.Typer(add_completion=False, no_args_is_help=True)


def _settings() -> Settings:
    settings = get_settings()
    configure_logging(settings)
    return settings


def _load_store(settings: Settings, dataset: Optional[str]) -> DatasetStore:
    store = DatasetStore(dataset or settings.resolved_dataset_path)
    try:
        store.load()
    except DatasetUnavailable as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)
    return store


def _engine(settings: Settings, store: DatasetStore) -> ChatbotEngine:
    return ChatbotEngine.from_settings(settings, store=store)


def render_recommendation(rec: Recommendation) -> List[str]:
    lines: List[str] = []
    if rec.title:
        lines.append(f"== {rec.title} ==")
    if rec.flags:
        lines.append("Get medical advice:")
        lines.extend(f"  ! {f}" for f in rec.flags)
    if rec.advice:
        lines.append("Options you could ask a pharmacist about:")
        for opt in rec.advice:
            products = f" (e.g. {', '.join(opt.example_products)})" if opt.example_products else ""
            lines.append(f"  - {opt.class_name}{products}")
            if opt.dose_adult:
                lines.append(f"      adult dose: {opt.dose_adult}")
    elif rec.outcome == "consult_pharmacist":
        lines.append("No suitable over-the-counter option: please speak to a pharmacist.")
    if rec.self_care:
        lines.append("Self-care:")
        lines.extend(f"  - {s}" for s in rec.self_care)
    if rec.cautions:
        lines.append("Cautions:")
        lines.extend(f"  * {c}" for c in rec.cautions)
    return lines


def _echo_turn(turn: TurnResult) -> None:
    if turn.error:
        typer.echo(f"  {turn.error}")
    if turn.prompt:
        typer.echo(turn.prompt)
    if turn.options_hint:
        typer.echo(f"   (Choices: {', '.join(turn.options_hint)})")


@app.command("init")
def cli_init(out: str = typer.Option("input.payload.example.json", "--out")):
    example = {
        "condition": "sorethroat",
        "who": "adult",
        "duration": "2 days",
        "action_taken": "none",
        "current_meds": "none",
        "description": "Scratchy sore throat since the weekend, no trouble breathing.",
        "other_answers": {"conditions": "", "allergies": ""},
    }
    Path(out).write_text(json.dumps(example, indent=2), encoding="utf-8")
    typer.echo(out)


@app.command("evaluate")
def cli_evaluate(
    input: str = typer.Option(..., "--input", help="Path to evaluation payload JSON"),
    dataset: Optional[str] = typer.Option(None, "--dataset", help="Dataset JSON (defaults to bundled dataset)"),
    out: Optional[str] = typer.Option(None, "--out", help="Optional path for recommendation JSON output"),
):
    """Evaluate a completed WWHAM form without a conversation."""
    settings = _settings()
    store = _load_store(settings, dataset)
    payload = json.loads(Path(input).read_text(encoding="utf-8"))
    rec = evaluate(
        payload,
        store,
        negation_window=settings.negation_window,
        max_distance=settings.fuzzy_max_distance,
        min_keyword_length=settings.fuzzy_min_keyword_length,
    )
    if out:
        Path(out).write_text(json.dumps(rec.model_dump(), indent=2), encoding="utf-8")
        typer.echo(out)
    else:
        typer.echo(json.dumps(rec.model_dump()))


@app.command("classify")
def cli_classify(
    text: str = typer.Option(..., "--text", help="Free-text symptom description"),
    dataset: Optional[str] = typer.Option(None, "--dataset", help="Dataset JSON (defaults to bundled dataset)"),
):
    """Print the condition id the text maps to, or null."""
    settings = _settings()
    store = _load_store(settings, dataset)
    cid = classify(
        text,
        store.get().conditions,
        max_distance=settings.fuzzy_max_distance,
        min_keyword_length=settings.fuzzy_min_keyword_length,
    )
    typer.echo(json.dumps(cid))


@app.command("chat")
def cli_chat(
    dataset: Optional[str] = typer.Option(None, "--dataset", help="Dataset JSON (defaults to bundled dataset)"),
    session_id: str = typer.Option("default", "--session", help="Session ID for conversation tracking"),
    save_session: bool = typer.Option(True, "--save/--no-save", help="Save the final recommendation"),
):
    """Start an interactive WWHAM consultation."""
    settings = _settings()
    store = _load_store(settings, dataset)
    engine = _engine(settings, store)
    bind_session(session_id)

    state = engine.start_conversation()
    typer.echo("=" * 60)
    typer.echo(GREETING)
    typer.echo("Type 'quit' at any time to exit.")
    typer.echo("=" * 60)

    try:
        opening = typer.prompt("You", default="", show_default=False)
    except (KeyboardInterrupt, EOFError):
        typer.echo("\nGoodbye!")
        return
    if opening.lower() in ("quit", "exit", "q"):
        typer.echo("Goodbye!")
        return
    turn = engine.classify_and_advance(state, opening)

    while not engine.is_conversation_complete(state):
        if turn.kind == "unavailable":
            typer.echo(turn.prompt, err=True)
            raise typer.Exit(code=1)
        _echo_turn(turn)
        try:
            answer = typer.prompt("You")
        except (KeyboardInterrupt, EOFError):
            typer.echo("\nGoodbye!")
            return
        if answer.lower() in ("quit", "exit", "q"):
            typer.echo("Goodbye!")
            return
        turn = engine.classify_and_advance(state, answer)

    rec = engine.get_final_recommendation(state)
    typer.echo("")
    typer.echo(turn.prompt)
    for line in render_recommendation(rec):
        typer.echo(line)

    if save_session:
        session_file = f"chatbot_session_{session_id}.json"
        Path(session_file).write_text(json.dumps(rec.model_dump(), indent=2), encoding="utf-8")
        typer.echo(f"\nSession saved to: {session_file}")


def _load_batch(input_file: str) -> Dict[str, List[str]]:
    data = json.loads(Path(input_file).read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("sessions", data)
    if isinstance(data, dict):
        return {str(k): [str(t) for t in v] for k, v in data.items()}
    if data and all(isinstance(t, str) for t in data):
        return {"session-1": list(data)}
    return {f"session-{i + 1}": [str(t) for t in turns] for i, turns in enumerate(data)}


@app.command("chat-batch")
def cli_chat_batch(
    input_file: str = typer.Option(..., "--input", help="JSON file with scripted user turns"),
    output_file: str = typer.Option("batch_results.json", "--output", help="Output file for results"),
    dataset: Optional[str] = typer.Option(None, "--dataset", help="Dataset JSON (defaults to bundled dataset)"),
):
    """Replay scripted conversations and save each session's outcome."""
    settings = _settings()
    store = _load_store(settings, dataset)
    engine = _engine(settings, store)

    try:
        sessions = _load_batch(input_file)
    except (OSError, ValueError, TypeError) as e:
        typer.echo(f"Error reading batch input: {e}", err=True)
        raise typer.Exit(code=1)

    results = []
    for name, turns in sessions.items():
        bind_session(name)
        state = engine.start_conversation()
        steps = []
        for text in turns:
            turn = engine.classify_and_advance(state, text)
            steps.append({"kind": turn.kind, "step": turn.step.value, "error": turn.error})
            if engine.is_conversation_complete(state):
                break
        rec = engine.get_final_recommendation(state)
        results.append({
            "session": name,
            "complete": engine.is_conversation_complete(state),
            "final_step": state.step.value,
            "turns": steps,
            "recommendation": rec.model_dump() if rec else None,
        })

    Path(output_file).write_text(json.dumps(results, indent=2), encoding="utf-8")
    typer.echo(output_file)


@app.command("csv-validate")
def cli_csv_validate(
    csv_path: str = typer.Option(..., "--csv", help="Path to rubric CSV"),
    dataset: Optional[str] = typer.Option(None, "--dataset", help="Dataset JSON (defaults to bundled dataset)"),
):
    """Check recommendations against a rubric CSV of scenarios and expected outcomes."""
    settings = _settings()
    store = _load_store(settings, dataset)
    total = 0
    passes = 0
    failures = []

    with open(csv_path, "r", encoding="utf-8-sig", newline="") as f:
        reader = csv.DictReader(f)
        for row in reader:
            total += 1
            payload = {
                "condition": row.get("condition") or None,
                "who": row.get("who") or None,
                "duration": row.get("duration") or None,
                "action_taken": row.get("action_taken") or "",
                "current_meds": row.get("current_meds") or "",
                "description": row.get("description") or "",
            }
            rec = evaluate(
                payload,
                store,
                negation_window=settings.negation_window,
                max_distance=settings.fuzzy_max_distance,
                min_keyword_length=settings.fuzzy_min_keyword_length,
            )

            problems = []
            expected = (row.get("expected_outcome") or "").strip()
            if expected and rec.outcome != expected:
                problems.append(f"outcome {rec.outcome} != {expected}")
            advice_names = [o.class_name.lower() for o in rec.advice] + [o.class_id for o in rec.advice]
            must = (row.get("expect_in_advice") or "").strip().lower()
            if must and not any(must in a for a in advice_names):
                problems.append(f"missing advice {must}")
            must_not = (row.get("expect_not_in_advice") or "").strip().lower()
            if must_not and any(must_not in a for a in advice_names):
                problems.append(f"unexpected advice {must_not}")

            if problems:
                failures.append({"row": total, "problems": problems})
            else:
                passes += 1

    typer.echo(json.dumps({
        "total": total,
        "passes": passes,
        "fails": total - passes,
        "failures": failures,
    }, indent=2))


@app.command("validate-dataset")
def cli_validate_dataset(
    dataset: Optional[str] = typer.Option(None, "--dataset", help="Dataset JSON (defaults to bundled dataset)"),
):
    """Run integrity checks on the reference dataset."""
    settings = _settings()
    store = _load_store(settings, dataset)
    report = check_dataset(store.get())
    typer.echo(json.dumps(report, indent=2))
    if not report["summary_pass"]:
        raise typer.Exit(code=2)


@app.command("version")
def cli_version():
    typer.echo(__version__)


if __name__ == "__main__":
    app()
