#!/usr/bin/env python3
"""
Agents Project Cleanup Script
=============================
Removes leftover agents and uploaded files from the Foundry project, e.g.
after a crashed instance that never ran its shutdown hook.

Usage:
    python scripts/cleanup_project.py                 # Delete document-agent-* agents and document_* files
    python scripts/cleanup_project.py --dry-run       # Only list what would be deleted
    python scripts/cleanup_project.py --prefix ""     # Delete every agent in the project
    python scripts/cleanup_project.py --keep-files    # Leave uploaded files alone
    python scripts/cleanup_project.py --all-files     # Delete every uploaded file in the project

Requirements:
    .env file configured with FOUNDRY_ENDPOINT and AZURE_* credentials
"""

import sys
import argparse
import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

# Add backend to path for imports
backend_path = Path(__file__).parent.parent / "backend"
sys.path.insert(0, str(backend_path))

from config import settings
from services.agent_backend import AgentBackend
from services.agent_manager import AGENT_NAME_PREFIX
from services.errors import AnalyzerError
from utils.file_manager import FileManager


FILE_NAME_PREFIX = f"{FileManager.UPLOAD_PREFIX}_"


@dataclass
class CleanupReport:
    agents: List[str] = field(default_factory=list)
    files: List[str] = field(default_factory=list)
    failures: List[str] = field(default_factory=list)


async def cleanup_project(
    backend: AgentBackend,
    prefix: str = AGENT_NAME_PREFIX,
    include_files: bool = True,
    file_prefix: str = FILE_NAME_PREFIX,
    dry_run: bool = False,
) -> CleanupReport:
    """
    Delete agents whose name starts with ``prefix`` and, optionally, uploaded
    files whose name starts with ``file_prefix``. Individual failures are
    recorded and do not stop the run.
    """
    report = CleanupReport()

    for agent in await backend.list_agents():
        if not agent.name.startswith(prefix):
            continue
        print(f"   Deleting Agent: {agent.id}, Name: {agent.name}")
        if dry_run:
            report.agents.append(agent.id)
            continue
        try:
            await backend.delete_agent(agent.id)
            report.agents.append(agent.id)
        except AnalyzerError as e:
            report.failures.append(f"agent {agent.id}: {e}")

    if include_files:
        for uploaded in await backend.list_files():
            if not uploaded.filename.startswith(file_prefix):
                continue
            print(f"   Deleting File: {uploaded.id}, Filename: {uploaded.filename}")
            if dry_run:
                report.files.append(uploaded.id)
                continue
            try:
                await backend.delete_file(uploaded.id)
                report.files.append(uploaded.id)
            except AnalyzerError as e:
                report.failures.append(f"file {uploaded.id}: {e}")

    return report


async def run(args: argparse.Namespace) -> int:
    from services.providers import create_agent_backend, create_token_provider

    try:
        tokens = create_token_provider(settings)
        backend = create_agent_backend(settings, tokens)
    except AnalyzerError as e:
        print(f"❌ {e}")
        return 1

    print("🧹 Starting cleanup of agents project resources...")
    print(f"   Endpoint: {settings.FOUNDRY_ENDPOINT}")
    if args.dry_run:
        print("   (dry run - nothing will be deleted)")

    try:
        report = await cleanup_project(
            backend,
            prefix=args.prefix,
            include_files=not args.keep_files,
            file_prefix="" if args.all_files else FILE_NAME_PREFIX,
            dry_run=args.dry_run,
        )
    finally:
        await backend.aclose()
        await tokens.aclose()

    print(f"\n✅ Agents: {len(report.agents)}, Files: {len(report.files)}")
    for failure in report.failures:
        print(f"   ⚠️  {failure}")
    print("Cleanup completed.")
    return 1 if report.failures else 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Delete leftover agents and files")
    parser.add_argument("--prefix", default=AGENT_NAME_PREFIX, help="Only delete agents whose name starts with this")
    parser.add_argument("--keep-files", action="store_true", help="Do not delete uploaded files")
    parser.add_argument("--all-files", action="store_true", help=f"Delete every uploaded file, not only {FILE_NAME_PREFIX}*")
    parser.add_argument("--dry-run", action="store_true", help="List resources without deleting them")
    args = parser.parse_args()
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
