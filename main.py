import argparse
import asyncio
import json
import logging
import platform
import signal
import sys
from pathlib import Path

from pipeline_monitor.config import GITHUB_CREDENTIAL_SERVICE, LOG_LEVEL, PIPELINES_FILE
from pipeline_monitor.credentials import EnvironmentCredentialStore, lookup_credential
from pipeline_monitor.discovery import discover_projects
from pipeline_monitor.exceptions import FeedReaderError
from pipeline_monitor.github_auth import poll_for_token, request_device_code
from pipeline_monitor.github_workflows import list_repositories, list_workflows
from pipeline_monitor.handlers import ConsoleStatusHandler
from pipeline_monitor.http_client import FeedSession, open_session
from pipeline_monitor.models import Pipeline
from pipeline_monitor.orchestrator import PipelineMonitor
from pipeline_monitor.pipeline_list import PipelineList
from pipeline_monitor.request_builders import github_applications_url

log = logging.getLogger("main")


def configure_logging(level_name: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level_name.upper(), logging.INFO),
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    logging.getLogger("aiohttp").setLevel(logging.WARNING)


def load_pipelines(path: str) -> PipelineList:
    file = Path(path)
    if not file.exists():
        log.warning("Pipeline file %s not found, starting with no pipelines.", file)
        return PipelineList()
    records = json.loads(file.read_text(encoding="utf-8"))
    return PipelineList(Pipeline.from_dict(record) for record in records)


async def run_monitor(pipelines_file: str, once: bool) -> None:
    pipelines = load_pipelines(pipelines_file)

    async with open_session() as session:
        monitor = PipelineMonitor(
            pipelines,
            FeedSession(session),
            credentials=EnvironmentCredentialStore(),
            handler=ConsoleStatusHandler(color=sys.stdout.isatty()),
        )

        if once:
            await monitor.update_all()
            for pipeline in monitor.pipelines:
                print(json.dumps(pipeline.to_dict()), flush=True)
            return

        loop = asyncio.get_running_loop()

        if platform.system() != "Windows":

            def _shutdown(sig: signal.Signals) -> None:
                log.info("Received %s, shutting down gracefully...", sig.name)
                monitor.stop()

            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, _shutdown, sig)

            try:
                await monitor.run()
            except asyncio.CancelledError:
                log.info("Monitor stopped.")

        else:
            try:
                await monitor.run()
            except (asyncio.CancelledError, KeyboardInterrupt):
                log.info("Shutting down...")
                monitor.stop()
                log.info("Monitor stopped.")


async def run_discovery(url: str) -> int:
    async with open_session() as session:
        result = await discover_projects(url, FeedSession(session), credentials=EnvironmentCredentialStore())
    print(f"Feed URL: {result.url}")
    for project in result.projects:
        print(f"  {project.name}" if project.is_valid else f"  ({project.message})")
    return 0 if any(p.is_valid for p in result.projects) else 1


async def run_login() -> int:
    async with open_session() as session:
        feed_session = FeedSession(session)
        try:
            code = await request_device_code(feed_session)
            print(f"Open {code.verification_uri} and enter the code {code.user_code}", flush=True)
            token = await poll_for_token(feed_session, code)
        except FeedReaderError as exc:
            log.error("GitHub login failed: %s", exc)
            return 1
    print(f"Set {EnvironmentCredentialStore.variable_name(GITHUB_CREDENTIAL_SERVICE)}={token}")
    print(f"Review or revoke access at {github_applications_url()}")
    return 0


async def run_workflows(target: str) -> int:
    owner, _, repository = target.partition("/")
    token = lookup_credential(EnvironmentCredentialStore(), GITHUB_CREDENTIAL_SERVICE)
    async with open_session() as session:
        feed_session = FeedSession(session)
        try:
            if not repository:
                for repo in await list_repositories(feed_session, owner, token):
                    print(f"{repo.owner or owner}/{repo.name}" + (" (private)" if repo.private else ""))
                return 0
            for workflow in await list_workflows(feed_session, owner, repository, token):
                print(f"{workflow.name}: {workflow.feed_url(owner, repository)}")
        except FeedReaderError as exc:
            log.error("Could not list %s: %s", target, exc)
            return 1
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Monitor CI build pipelines")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Set logging level (overrides LOG_LEVEL env var)",
    )
    parser.add_argument(
        "--pipelines",
        default=PIPELINES_FILE,
        help=f"JSON file with the pipelines to monitor (default: {PIPELINES_FILE})",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Poll every pipeline once, print the results as JSON lines and exit",
    )
    parser.add_argument(
        "--discover",
        metavar="URL",
        help="Find the CCTray feed for a server URL and list its projects",
    )
    parser.add_argument(
        "--login",
        action="store_true",
        help="Obtain a GitHub token through the device flow",
    )
    parser.add_argument(
        "--workflows",
        metavar="OWNER[/REPO]",
        help="List the repositories of a GitHub owner, or the workflow feed URLs of a repository",
    )
    args = parser.parse_args()
    configure_logging(args.log_level or LOG_LEVEL)

    if args.discover:
        return asyncio.run(run_discovery(args.discover))
    if args.login:
        return asyncio.run(run_login())
    if args.workflows:
        return asyncio.run(run_workflows(args.workflows))

    asyncio.run(run_monitor(args.pipelines, args.once))
    return 0


if __name__ == "__main__":
    sys.exit(main())
