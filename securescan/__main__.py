"""
SecureScan command line.

    python -m securescan scan https://github.com/owner/repo [--tools eslint semgrep] [--json]
    python -m securescan serve [--host 0.0.0.0] [--port 8000]
"""
import argparse
import json
import logging
import sys
from typing import List, Optional

from dotenv import load_dotenv

# Load environment variables from .env file before settings are read
load_dotenv()

from . import __version__
from .api.config import settings
from .github import GitHubAPI, GitHubRepositoryProvider, RepositoryError
from .log_utils import configure_logging
from .orchestrator import SCAN_STAGES, OrchestrationResult, ScanOptions, ScanOrchestrator

logger = logging.getLogger(__name__)

STAGE_KEYS = [stage.key for stage in SCAN_STAGES]


def parse_args(argv: Optional[List[str]] = None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(prog='securescan',
                                     description='Scan repositories for security and quality issues.')
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose output')
    parser.add_argument('--debug', action='store_true', help='Enable debug output')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')

    commands = parser.add_subparsers(dest='command', required=True)

    scan = commands.add_parser('scan', help='Clone a repository and scan it once')
    scan.add_argument('repository_url', help='https://github.com/<owner>/<repo>')
    scan.add_argument('--tools', nargs='+', choices=STAGE_KEYS,
                      help='Stages to run (default: all except deep_analysis)')
    scan.add_argument('--json', action='store_true', help='Print findings as JSON')

    serve = commands.add_parser('serve', help='Run the HTTP API')
    serve.add_argument('--host', default='127.0.0.1')
    serve.add_argument('--port', type=int, default=8000)
    serve.add_argument('--reload', action='store_true')

    return parser.parse_args(argv)


def print_report(result: OrchestrationResult, as_json: bool = False) -> None:
    if as_json:
        print(json.dumps({
            'files_scanned': result.files_scanned,
            'summary': result.summary,
            'tools': result.tool_results_dict(),
            'findings': [f.to_dict() for f in result.findings],
        }, indent=2))
        return

    print(f"Files scanned: {result.files_scanned}")
    print("Summary: " + ", ".join(f"{k}={v}" for k, v in result.summary.items()))
    for tool in result.tool_results:
        line = f"  {tool.scanner_name:<18} {tool.status.value:<8} {len(tool.findings)} findings"
        if tool.error:
            line += f" ({tool.error})"
        print(line)
    for finding in result.findings:
        location = finding.file or '-'
        if finding.line:
            location += f":{finding.line}"
        print(f"[{finding.severity.value.upper():<6}] {finding.source}: {finding.title} ({location})")


def run_scan(args) -> int:
    token = settings.GITHUB_TOKEN or None
    provider = GitHubRepositoryProvider(
        api=GitHubAPI(token=token, base_url=settings.GITHUB_API_URL),
        token=token,
        clone_timeout=settings.CLONE_TIMEOUT_SECONDS,
    )
    options = ScanOptions.only(args.tools) if args.tools else ScanOptions()

    try:
        repository = provider.resolve(args.repository_url)
        working_copy = provider.clone(repository, settings.WORK_DIR)
    except RepositoryError as e:
        logger.error("%s", e)
        return 1

    try:
        result = ScanOrchestrator.from_settings(settings).run(
            working_copy,
            options,
            on_progress=lambda step, progress: logger.info("[%3d%%] %s", progress, step),
        )
    finally:
        provider.cleanup(working_copy)

    print_report(result, as_json=args.json)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    level = 'DEBUG' if args.debug else ('INFO' if args.verbose else settings.LOG_LEVEL)
    configure_logging(level)

    if args.command == 'serve':
        import uvicorn
        uvicorn.run("securescan.api.main:app", host=args.host, port=args.port, reload=args.reload)
        return 0
    return run_scan(args)


if __name__ == '__main__':
    sys.exit(main())
