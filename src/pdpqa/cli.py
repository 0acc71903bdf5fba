"""
Command-line interface for pdpqa.

Runs the catalog against one product page and writes the generated
Playwright module.

Exit codes:
  0    run completed (test failures do not change the exit code)
  1    missing product URL or a fatal fault (catalog, browser, ...)
  130  interrupted by the user
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

import structlog
from dotenv import load_dotenv

from pdpqa import __version__
from pdpqa.config import RunConfig
from pdpqa.pipeline import run_pipeline
from pdpqa.reporting import ConsoleReporter


def configure_logging(verbose: bool = False, debug: bool = False) -> None:
    """Send structlog output to stderr, leaving stdout to the run report."""
    level = logging.DEBUG if debug else logging.INFO if verbose else logging.WARNING

    processors: list[structlog.types.Processor] = [
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="%H:%M:%S"),
    ]
    if debug:
        processors.append(
            structlog.processors.CallsiteParameterAdder({structlog.processors.CallsiteParameter.FUNC_NAME})
        )
    processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for CLI."""
    parser = argparse.ArgumentParser(
        prog="pdpqa",
        description="pdpqa - AI-assisted product detail page tester and Playwright test generator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  pdpqa https://shop.example.com/products/widget
  pdpqa https://shop.example.com/products/widget --output-dir tests/generated
  TEST_PRODUCT_URL=https://shop.example.com/products/widget pdpqa -v

Environment:
  TEST_PRODUCT_URL      Product page URL when no positional URL is given
  PDPQA_CATALOG         Test catalog JSON (default: bundled catalog)
  PDPQA_OUTPUT_DIR      Output directory for generated tests (default: ./generated)
  OWL_BROWSER_URL       Remote browser URL (with OWL_BROWSER_TOKEN)
  PDPQA_LLM_BASE_URL    OpenAI-compatible endpoint (default: OpenAI)
  PDPQA_LLM_API_KEY     API key (falls back to OPENAI_API_KEY)
  PDPQA_LLM_MODEL       Vision-capable model (default: gpt-4o)
""",
    )

    parser.add_argument(
        "url",
        nargs="?",
        default=None,
        help="Product page URL (default: $TEST_PRODUCT_URL)",
    )

    parser.add_argument(
        "--catalog",
        default=None,
        help="Path to a test catalog JSON file",
    )

    parser.add_argument(
        "--output-dir",
        default=None,
        dest="output_dir",
        help="Directory for the generated test module",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug output and show tracebacks",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    return parser


def build_config(args: argparse.Namespace) -> RunConfig:
    """Build a RunConfig from parsed arguments, falling back to the environment."""
    return RunConfig(
        product_url=args.url or "",
        catalog_path=args.catalog or "",
        output_dir=args.output_dir or "",
    )


def main(argv: list[str] | None = None) -> None:
    """Main entry point for CLI."""
    load_dotenv()

    parser = create_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=args.verbose, debug=args.debug)
    logger = structlog.get_logger(__name__)

    config = build_config(args)
    if not config.product_url:
        logger.error("missing_product_url", hint="pass a URL or set TEST_PRODUCT_URL")
        parser.print_usage(sys.stderr)
        sys.exit(1)

    try:
        asyncio.run(run_pipeline(config, ConsoleReporter()))
    except KeyboardInterrupt:
        print("\nRun interrupted by user")
        sys.exit(130)
    except Exception as e:
        logger.error("fatal_error", error=str(e), error_type=type(e).__name__)
        if args.debug:
            raise
        sys.exit(1)

    sys.exit(0)


if __name__ == "__main__":
    main()
