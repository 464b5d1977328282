"""Entry point that prepares the repository, runs the graph and writes artifacts."""

import logging
import threading
from datetime import datetime

from spec_search.agents.protocols import Coder, SpecWriter, SuiteRunner
from spec_search.agents.test_runner import run_best_effort_tests
from spec_search.feedback import build_initial_packet, build_objective_anchor, packet_text
from spec_search.models import Metrics, RunLog, SearchResult
from spec_search.search.artifacts import ArtifactStore
from spec_search.search.config import SearchConfig
from spec_search.search.controller import build_search_graph, recursion_limit_for
from spec_search.search.exceptions import NoResultError
from spec_search.search.state import make_initial_state
from spec_search.vcs import GitRepository, SnapshotError, prepare_base_repo

logger = logging.getLogger(__name__)


def run_search(
    config: SearchConfig,
    spec_writer: SpecWriter,
    coder: Coder,
    test_runner: SuiteRunner = run_best_effort_tests,
    cancel_event: threading.Event | None = None,
    repository: GitRepository | None = None,
) -> SearchResult:
    """Search for a spec that reproduces ``config.commit`` and persist the best one.

    Flow:
    1. Clone the repository into ``<workdir>/base`` (unless ``repository`` is given)
    2. Resolve the target commit and snapshot its diff against the parent
    3. Run the search graph until a stop rule fires
    4. Write best prompt, best patch, metrics and the run log

    Raises:
        VCSError: If the repository, commit or target diff cannot be resolved.
        CandidateGenerationError: If an iteration yields no valid candidate.
        SearchCancelledError: If ``cancel_event`` is set during the run.
        NoResultError: If no iteration produced a best result.
    """
    started_at = datetime.now()
    store = ArtifactStore(config.workdir)
    store.ensure_layout()

    if repository is None:
        repository = prepare_base_repo(config.repo, config.workdir)
    commit_info = repository.resolve_commit_info(config.commit)
    try:
        target = repository.snapshot_between(commit_info.parent_sha, commit_info.target_sha)
    except SnapshotError as exc:
        raise SnapshotError(f"collect target patch: {exc}") from exc
    store.write_target_patch(target.patch)
    logger.info(
        "Target %s (parent %s) changes %d file(s)",
        commit_info.target_sha[:12],
        commit_info.parent_sha[:12],
        len(target.changed_files),
    )

    initial_packet = build_initial_packet(
        0, target, commit_info.commit_message, config.max_path_refs
    )
    initial_state = make_initial_state(
        commit_info=commit_info,
        target=target,
        feedback_text=packet_text(initial_packet),
        objective_anchor=build_objective_anchor(commit_info.commit_message, target),
    )

    graph = build_search_graph(
        spec_writer=spec_writer,
        coder=coder,
        test_runner=test_runner,
        workspace=repository,
        store=store,
        config=config,
        cancel_event=cancel_event,
    )
    final_state = graph.invoke(
        initial_state,
        config={"recursion_limit": recursion_limit_for(config.max_iters)},
    )

    best = final_state["best"]
    if best is None:
        raise NoResultError("no successful iteration produced a candidate")

    store.write_best(best.prompt, best.patch)
    store.write_json(
        "run_log.json",
        RunLog(
            repo=config.repo,
            target_commit=commit_info.target_sha,
            parent_commit=commit_info.parent_sha,
            alpha=config.alpha,
            threshold=config.threshold,
            max_iters=config.max_iters,
            best_iteration=best.iteration,
            iterations=final_state["iteration_logs"],
            stopped_reason=final_state["stopped_reason"],
            commit_message=commit_info.commit_message,
            started_at=started_at,
            completed_at=datetime.now(),
        ),
    )
    store.write_json(
        "metrics.json",
        Metrics(
            tech_similarity=best.tech,
            realism_score=best.realism,
            final_score=best.final,
            alpha=config.alpha,
            best_iteration=best.iteration,
        ),
    )

    return SearchResult(
        best_iteration=best.iteration,
        best_tech_similarity=best.tech,
        best_realism=best.realism,
        best_final_score=best.final,
        stopped_reason=final_state["stopped_reason"],
        iterations_run=final_state["iteration"],
        artifacts_dir=str(store.artifacts_dir),
    )
