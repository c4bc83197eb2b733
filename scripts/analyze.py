#!/usr/bin/env python3
"""Script to submit one prompt/output pair and print the canonical record."""

import argparse
import asyncio
import json
import sys
from typing import Optional

import structlog

from libs.common.config import GatewayConfig
from libs.common.logging import configure_logging
from libs.gateway.client import RequestGateway
from libs.gateway.session import AnalysisSession, mint_session_id
from libs.introspection.errors import IntrospectionError
from libs.introspection.models import CanonicalResult
from libs.result_cache.factory import create_result_cache

logger = structlog.get_logger("analyze_cli")


async def run_analysis(
    prompt: str,
    output: str,
    config: Optional[GatewayConfig] = None
) -> CanonicalResult:
    """Run a single analysis through a throwaway session."""
    config = config or GatewayConfig()
    session_id = mint_session_id()

    async with RequestGateway(config) as gateway:
        session = AnalysisSession(
            gateway=gateway,
            cache=create_result_cache(config, session_id),
            config=config,
            session_id=session_id
        )
        try:
            result_id = await session.analyze(prompt, output)
            return await session.get_result(result_id)
        finally:
            await session.close()


def build_config(env_file: Optional[str] = None, backend_url: Optional[str] = None) -> GatewayConfig:
    """Settings from the environment, an optional dotenv file and CLI overrides.

    Process environment variables take precedence over the dotenv file.
    """
    config = GatewayConfig(_env_file=env_file) if env_file else GatewayConfig()
    if backend_url:
        config = config.model_copy(update={"watcher_backend_url": backend_url})
    return config


def main():
    """Main function for CLI."""
    parser = argparse.ArgumentParser(description="Analyze a model output with the introspection backend")
    parser.add_argument("--prompt", required=True, help="Prompt given to the inspected model")
    parser.add_argument("--output", required=True, help="Output the model produced")
    parser.add_argument("--backend-url", help="Override WATCHER_BACKEND_URL")
    parser.add_argument("--env-file", help="dotenv file read for settings; environment variables win")

    args = parser.parse_args()

    config = build_config(args.env_file, args.backend_url)

    configure_logging("analyze_cli", config.watcher_log_level, "console")

    try:
        result = asyncio.run(run_analysis(args.prompt, args.output, config))
    except IntrospectionError as e:
        logger.error("Analysis failed", error=str(e), error_type=type(e).__name__)
        sys.exit(1)

    print(json.dumps(result.model_dump(mode="json", by_alias=True), indent=2))
    sys.exit(0)


if __name__ == "__main__":
    main()
