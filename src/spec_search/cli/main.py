"""CLI entry point for the spec search."""
import argparse
import json
import logging
import signal
import sys
import threading
import traceback

from dotenv import load_dotenv

from spec_search.agents.exceptions import AgentError
from spec_search.models import SearchResult
from spec_search.search.config import SearchConfig, load_config
from spec_search.search.exceptions import ConfigError, SearchCancelledError, SearchError
from spec_search.vcs.exceptions import VCSError

load_dotenv()

# Exit codes
EXIT_SUCCESS = 0
EXIT_INVALID_INPUT = 1
EXIT_AGENT_ERROR = 2
EXIT_SEARCH_ERROR = 3
EXIT_VCS_ERROR = 4
EXIT_UNEXPECTED = 5
EXIT_KEYBOARD_INTERRUPT = 130

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Safe keys allowed in config output (no secrets)
_SAFE_CONFIG_KEYS = frozenset(SearchConfig.model_fields)


def build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser."""
    defaults = SearchConfig.model_fields
    parser = argparse.ArgumentParser(
        prog="spec-search",
        description=(
            "Search for a natural-language change request that makes a coding "
            "agent reproduce a target commit"
        ),
    )
    parser.add_argument(
        "repo",
        type=str,
        help="Repository: local path, URL, host/path or owner/repo (GitHub)",
    )
    parser.add_argument("commit", type=str, help="Target commit SHA or ref")
    parser.add_argument(
        "--workdir",
        type=str,
        default=defaults["workdir"].default,
        help="Working directory for the clone, runs and artifacts (default: %(default)s)",
    )
    parser.add_argument(
        "--max-iters",
        type=int,
        default=defaults["max_iters"].default,
        help="Maximum search iterations (default: %(default)s)",
    )
    parser.add_argument(
        "--threshold",
        type=float,
        default=defaults["threshold"].default,
        help="Final score that stops the search early (default: %(default)s)",
    )
    parser.add_argument(
        "--timeout-seconds",
        type=int,
        default=defaults["timeout_seconds"].default,
        help="Timeout per coder attempt in seconds (default: %(default)s)",
    )
    parser.add_argument(
        "--keep-runs",
        action="store_true",
        help="Keep per-attempt worktrees under <workdir>/runs",
    )
    parser.add_argument(
        "--alpha",
        type=float,
        default=defaults["alpha"].default,
        help="Weight of technical similarity in the final score (default: %(default)s)",
    )
    parser.add_argument(
        "--max-path-refs",
        type=int,
        default=defaults["max_path_refs"].default,
        help="File paths a prompt may mention before realism drops (default: %(default)s)",
    )
    parser.add_argument(
        "--max-identifiers",
        type=int,
        default=defaults["max_identifiers"].default,
        help="Code-like identifiers a prompt may use before realism drops (default: %(default)s)",
    )
    parser.add_argument(
        "--max-length",
        type=int,
        default=defaults["max_length"].default,
        help="Maximum prompt length in characters, 0 for no cap (default: %(default)s)",
    )
    parser.add_argument(
        "--candidates-per-iter",
        type=int,
        default=defaults["candidates_per_iter"].default,
        help="Candidate prompts generated per iteration (default: %(default)s)",
    )
    parser.add_argument(
        "--coder-runs-per-iter",
        type=int,
        default=defaults["coder_runs_per_iter"].default,
        help="Top-ranked candidates executed per iteration (default: %(default)s)",
    )
    parser.add_argument(
        "--model",
        type=str,
        default=defaults["model"].default,
        help="Model ID to use (default: %(default)s)",
    )
    parser.add_argument(
        "--llm-provider",
        type=str,
        default="auto",
        choices=("auto", "anthropic", "openai"),
        help="LLM provider: auto (default), anthropic, or openai",
    )
    parser.add_argument(
        "--llm-fallback-provider",
        type=str,
        default="",
        choices=("", "anthropic", "openai"),
        help="Optional explicit fallback provider when the primary provider fails",
    )
    parser.add_argument(
        "--allow-llm-fallback",
        action="store_true",
        help="Retry failed calls on the fallback provider",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--dry-run", action="store_true", help="Print config and exit without running"
    )
    parser.add_argument(
        "--output-json", action="store_true", help="Output results as JSON"
    )
    return parser


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        stream=sys.stderr,
    )
    if not verbose:
        # SDK request logs drown out iteration progress at INFO.
        for name in ("httpx", "anthropic", "openai"):
            logging.getLogger(name).setLevel(logging.WARNING)


def config_from_args(args: argparse.Namespace) -> SearchConfig:
    """Build a validated SearchConfig from parsed arguments.

    Raises:
        ConfigError: If any value is out of range.
    """
    return load_config(
        repo=args.repo,
        commit=args.commit,
        workdir=args.workdir,
        max_iters=args.max_iters,
        threshold=args.threshold,
        timeout_seconds=args.timeout_seconds,
        keep_runs=args.keep_runs,
        verbose=args.verbose,
        alpha=args.alpha,
        max_path_refs=args.max_path_refs,
        max_identifiers=args.max_identifiers,
        max_length=args.max_length,
        candidates_per_iter=args.candidates_per_iter,
        coder_runs_per_iter=args.coder_runs_per_iter,
        model=args.model,
        llm_provider=args.llm_provider,
        llm_fallback_provider=args.llm_fallback_provider or None,
        allow_llm_fallback=args.allow_llm_fallback,
    )


def create_agents(config: SearchConfig) -> dict:
    """Create the spec writer and coder sharing one LLM client.

    Agent imports are deferred so the --help and --dry-run paths never
    load the provider SDKs.

    Returns:
        Dict with keys: spec_writer, coder.
    """
    from spec_search.agents.coder_agent import CoderAgent
    from spec_search.agents.llm_client import LLMClient
    from spec_search.agents.spec_writer import SpecWriterAgent

    llm = LLMClient(
        model=config.model,
        llm_provider=config.llm_provider,
        llm_fallback_provider=config.llm_fallback_provider,
        allow_fallback=config.allow_llm_fallback,
    )
    return {
        "spec_writer": SpecWriterAgent(llm),
        "coder": CoderAgent(llm),
    }


def print_config_human(config: dict) -> None:
    """Print configuration in human-readable format.

    Only prints keys in the safe allowlist to prevent secret leakage.
    """
    print("\nConfiguration:")
    print(f"{'='*40}")
    for key, value in config.items():
        if key in _SAFE_CONFIG_KEYS:
            print(f"  {key}: {value}")
    print(f"{'='*40}")


def print_result_human(result: SearchResult) -> None:
    print(f"\n{'='*60}")
    print("Spec search complete")
    print(f"{'='*60}")
    print(f"Best iteration:    {result.best_iteration}")
    print(f"Tech similarity:   {result.best_tech_similarity:.4f}")
    print(f"Realism:           {result.best_realism:.4f}")
    print(f"Final score:       {result.best_final_score:.4f}")
    print(f"Stopped:           {result.stopped_reason}")
    print(f"Iterations run:    {result.iterations_run}")
    print(f"Artifacts:         {result.artifacts_dir}")
    print(f"{'='*60}")


def make_sigint_handler(cancel_event: threading.Event):
    """Return a SIGINT handler that requests cooperative cancellation.

    The first interrupt sets ``cancel_event`` so the search stops at its next
    checkpoint; a second one raises ``KeyboardInterrupt`` immediately.
    """

    def _handle(signum, frame):
        if cancel_event.is_set():
            raise KeyboardInterrupt
        print("\nStopping after the current step (Ctrl-C again to abort)...", file=sys.stderr)
        cancel_event.set()

    return _handle


def _handle_error(label: str, exc: BaseException, verbose: bool, exit_code: int) -> int:
    """Print error message to stderr and return the exit code."""
    print(f"{label}: {exc}", file=sys.stderr)
    if verbose:
        traceback.print_exc(file=sys.stderr)
    return exit_code


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:]).

    Returns:
        Exit code integer.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = config_from_args(args)
    except ConfigError as exc:
        return _handle_error("Invalid input", exc, args.verbose, EXIT_INVALID_INPUT)

    if args.dry_run:
        safe = {k: v for k, v in config.model_dump().items() if k in _SAFE_CONFIG_KEYS}
        if args.output_json:
            print(json.dumps(safe, indent=2))
        else:
            print_config_human(safe)
        return EXIT_SUCCESS

    configure_logging(config.verbose)
    cancel_event = threading.Event()
    previous_handler = signal.signal(signal.SIGINT, make_sigint_handler(cancel_event))
    try:
        agents = create_agents(config)

        from spec_search.search.runner import run_search

        result = run_search(config, cancel_event=cancel_event, **agents)

        if args.output_json:
            print(result.model_dump_json(indent=2))
        else:
            print_result_human(result)
        return EXIT_SUCCESS

    except AgentError as exc:
        return _handle_error("Agent error", exc, args.verbose, EXIT_AGENT_ERROR)

    except VCSError as exc:
        return _handle_error("Git error", exc, args.verbose, EXIT_VCS_ERROR)

    except (SearchCancelledError, KeyboardInterrupt):
        print("\nInterrupted.", file=sys.stderr)
        return EXIT_KEYBOARD_INTERRUPT

    except SearchError as exc:
        return _handle_error("Search error", exc, args.verbose, EXIT_SEARCH_ERROR)

    except Exception as exc:
        return _handle_error("Unexpected error", exc, args.verbose, EXIT_UNEXPECTED)

    finally:
        signal.signal(signal.SIGINT, previous_handler)


if __name__ == "__main__":
    sys.exit(main())
