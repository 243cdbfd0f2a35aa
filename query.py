#!/usr/bin/env python3
"""Ad hoc query runner for Recipe Guard.

Runs one pipeline turn against Gemini without any surrounding service.

Usage:
    python query.py "I want chicken fajitas"
    python query.py --allergies peanut,milk "Thai peanut noodles please"
    python query.py --appliances stove,kettle "https://example.com/recipe/lasagne"
    python query.py --preferences "vegetarian, no mushrooms" "A hearty stew"
    python query.py --debug "Your query"  # Show full JSON result

Features:
- Profile built from command line flags (defaults: no allergies, stove + oven + kettle)
- Recipe rendered as markdown, residual violations listed in the message
- Debug mode to display the full PipelineResult as JSON
"""

import asyncio
import sys

from rich.console import Console
from rich.markdown import Markdown

from recipe_guard.agents.pipeline import RecipePipeline
from recipe_guard.models.models import PipelineResult, RecipeDraft, UserProfile
from recipe_guard.models.vocabulary import DEFAULT_APPLIANCES
from recipe_guard.tools.profile_store import InMemoryProfileStore, ProfileStore
from recipe_guard.utils.errors import InvalidInputError
from recipe_guard.utils.logger import logger

console = Console()

CLI_USER = "cli"

USAGE = 'Usage: python query.py [--debug] [--allergies a,b] [--appliances x,y] [--preferences TEXT] "<message>"'


def render_recipe(draft: RecipeDraft) -> str:
    """Markdown rendering of a draft."""
    lines = [f"# {draft.title}", "", draft.description, "", "## Ingredients", ""]
    lines.extend(f"- {ingredient}" for ingredient in draft.ingredients)
    lines.extend(["", "## Instructions", ""])
    lines.extend(f"{index}. {step}" for index, step in enumerate(draft.instructions, start=1))
    return "\n".join(lines)


def show_result(result: PipelineResult, debug: bool = False) -> None:
    if debug:
        console.print("[bold cyan]Debug Mode: Full Result[/bold cyan]")
        console.print("[dim]" + "=" * 60 + "[/dim]")
        console.print_json(result.model_dump_json())
        console.print("[dim]" + "=" * 60 + "[/dim]")
        console.print()

    console.print(Markdown(result.message or ""))
    if result.recipe is not None and result.recipe.title:
        console.print()
        console.print(Markdown(render_recipe(result.recipe)))

    status = "[green]✓ compliant[/green]" if result.is_compliant else f"[yellow]{len(result.violations)} open issue(s)[/yellow]"
    console.print(
        f"\n[dim]intent={result.intent.label.value} confidence={result.intent.confidence:.2f} "
        f"repairs={result.repair_iterations}[/dim] {status if result.recipe else ''}"
    )


def run_query(query: str, store: ProfileStore, user_id: str = CLI_USER, debug: bool = False) -> None:
    """Execute a single turn for ``user_id`` and print the result."""
    try:
        logger.info(f"Running query: {query}")
        profile = store.get_profile(user_id)
        pipeline = RecipePipeline()
        result = asyncio.run(pipeline.process(query, "", None, profile))
        console.print()
        show_result(result, debug=debug)
    except KeyboardInterrupt:
        logger.info("\nQuery interrupted by user.")
        sys.exit(0)
    except InvalidInputError as e:
        console.print(f"[red]✗ Invalid input: {e}[/red]")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Query execution failed: {e}", exc_info=True)
        sys.exit(1)


def parse_args(argv: list[str]) -> tuple[str, UserProfile, bool]:
    """Return (message, profile, debug) parsed from ``--flag value`` pairs followed by the message."""
    debug_mode = False
    allergies = ""
    appliances = ",".join(sorted(DEFAULT_APPLIANCES))
    preferences = ""
    argv_start = 1

    value_flags = {"--allergies", "--appliances", "--preferences"}
    while argv_start < len(argv) and argv[argv_start].startswith("--"):
        flag = argv[argv_start]
        if flag == "--debug":
            debug_mode = True
            argv_start += 1
            continue
        if flag not in value_flags:
            print(f"Unknown flag: {flag}")
            sys.exit(1)
        if argv_start + 1 >= len(argv):
            print(f"Error: {flag} flag requires a value")
            sys.exit(1)
        value = argv[argv_start + 1]
        if flag == "--allergies":
            allergies = value
        elif flag == "--appliances":
            appliances = value
        else:
            preferences = value
        argv_start += 2

    if argv_start >= len(argv):
        print("Error: No message provided")
        print(USAGE)
        sys.exit(1)

    try:
        profile = UserProfile(allergies=allergies, appliances=appliances, preferences=preferences)
    except ValueError as e:
        print(f"Error: invalid profile: {e}")
        sys.exit(1)

    # Join all arguments after flags as the message (handles messages with spaces)
    return " ".join(argv[argv_start:]), profile, debug_mode


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(USAGE)
        print("")
        print("Examples:")
        print('  python query.py "I want chicken fajitas"')
        print('  python query.py --allergies peanut "Thai peanut noodles please"')
        print('  python query.py --appliances stove,kettle --debug "https://example.com/recipe/lasagne"')
        sys.exit(1)

    message, user_profile, debug = parse_args(sys.argv)
    store = InMemoryProfileStore()
    store.save_profile(CLI_USER, user_profile)
    run_query(message, store, debug=debug)
