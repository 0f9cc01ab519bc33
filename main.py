#!/usr/bin/env python3
"""
AI Task Router - Main CLI entrypoint

Triages and routes Jira issues with an LLM: categorization, priority,
sentiment, urgency and component analysis, plus assignee and priority
suggestions applied according to the stored routing configuration.

Usage:
    python main.py serve                      # Start the webhook/API server
    python main.py triage PROJ-123            # Analyze an issue, print results
    python main.py triage PROJ-123 --apply    # Analyze and apply like a webhook event
    python main.py config show                # Print the configuration (keys redacted)
    python main.py config reset               # Restore default configuration
    python main.py purge                      # Delete activity older than the retention window
"""

import argparse
import json
import sys

from classifier.context_builder import build_enhanced_issue_data
from classifier.llm_client import create_llm_client
from classifier.routing_engine import RoutingEngine
from classifier.triage_engine import TriageEngine
from routing.event_handler import handle_issue_event
from routing.services import Services, build_services
from utils.config_loader import load_config
from utils.logger import setup_logger

logger = setup_logger()


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, default=str))


def triage_issue(services: Services, issue_key: str, apply: bool = False) -> bool:
    """
    Run triage and routing for one issue.

    Without ``apply`` nothing is written to Jira; the analysis and the
    suggestions are printed. With ``apply`` the issue goes through the same
    path as a webhook event.
    """
    if apply:
        issue = services.jira.get_issue(issue_key)
        outcome = handle_issue_event({"webhookEvent": "cli:triage", "issue": issue}, services)
        _print_json(outcome)
        return outcome["status"] != "failed"

    config = services.config_provider.get()
    try:
        llm_client = create_llm_client(config, services.credentials)
    except ValueError as e:
        logger.warning(f"No LLM available for {config.selected_model}, using fallbacks: {e}")
        llm_client = None

    logger.info("=" * 80)
    logger.info(f"Triaging {issue_key} with {config.selected_model}")
    logger.info("=" * 80)

    issue_data = build_enhanced_issue_data(services.jira, issue_key, config)
    triage = TriageEngine(llm_client, services.jira).perform_triage(issue_data)
    suggestions = RoutingEngine(config, llm_client).generate_suggestions(issue_data, triage)

    _print_json({
        "issueKey": issue_key,
        "triage": triage.to_record(),
        "summary": triage.summary(),
        "suggestions": suggestions.to_record(),
    })
    logger.info(f"✓ Triage complete for {issue_key} (confidence: {triage.confidence:.2f})")
    return True


def main():
    """Main CLI entrypoint."""
    parser = argparse.ArgumentParser(
        description="AI Task Router - auto-triage and auto-routing for Jira",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Start the API server on all interfaces
  python main.py serve --host 0.0.0.0 --port 8080

  # Dry-run triage of an issue
  python main.py triage PROJ-123
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Serve command
    serve_parser = subparsers.add_parser(
        "serve",
        help="Start the webhook and procedures API server"
    )
    serve_parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to run the API server on (default: 8000)"
    )
    serve_parser.add_argument(
        "--host",
        type=str,
        default="127.0.0.1",
        help="Host to bind the server to (default: 127.0.0.1)"
    )
    serve_parser.add_argument(
        "--no-reload",
        action="store_true",
        help="Disable auto-reload (use for production)"
    )

    # Triage command
    triage_parser = subparsers.add_parser(
        "triage",
        help="Triage and route a single issue"
    )
    triage_parser.add_argument(
        "issue_key",
        help="Issue key (e.g., 'PROJ-123')"
    )
    triage_parser.add_argument(
        "--apply",
        action="store_true",
        help="Apply results to Jira as a webhook event would"
    )

    # Config command
    config_parser = subparsers.add_parser(
        "config",
        help="Show or reset the stored routing configuration"
    )
    config_parser.add_argument(
        "action",
        choices=["show", "reset"],
        help="'show' prints the configuration, 'reset' restores defaults"
    )

    # Purge command
    purge_parser = subparsers.add_parser(
        "purge",
        help="Delete activity records older than the retention window"
    )
    purge_parser.add_argument(
        "--days",
        type=int,
        default=None,
        help="Retention in days (default: retentionDays from the configuration)"
    )

    args = parser.parse_args()

    # Show help if no command provided
    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.command == "serve":
        from backend.server import run_server
        run_server(args.host, args.port, reload=not args.no_reload)
        sys.exit(0)

    config = load_config()
    setup_logger(config.log_level)

    try:
        services = build_services(config)
    except Exception as e:
        logger.error(f"Failed to initialize services: {e}")
        sys.exit(1)

    if args.command == "triage":
        try:
            success = triage_issue(services, args.issue_key, apply=args.apply)
        except Exception as e:
            logger.error(f"✗ Failed to triage {args.issue_key}: {e}")
            sys.exit(1)
        sys.exit(0 if success else 1)

    elif args.command == "config":
        if args.action == "reset":
            services.config_provider.reset_to_defaults()
        _print_json({
            "configuration": services.config_provider.export(),
            "summary": services.config_provider.summary(),
        })
        sys.exit(0)

    elif args.command == "purge":
        days = args.days or services.config_provider.get().retention_days
        removed = services.activity.purge_expired(days)
        logger.info(f"✓ Purged {removed} records older than {days} days")
        sys.exit(0)


if __name__ == "__main__":
    main()
