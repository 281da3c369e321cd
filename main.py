"""
Main entry point for the Teamleader time-tracking importer
"""
import os
import sys
import uuid
import argparse

import requests

from clients import TeamleaderClient, TokenManager, parse_redirect_url
from config import DEFAULT_CONFIG_PATH, DEFAULT_INPUT_PATH, TOKEN_FILE_NAME, load_settings
from importers import import_to_teamleader
from models import ImportSummary
from readers import read_work_entries
from utils import logger, setup_logging


def print_table(items, header: str = 'Name'):
    print()
    print(f"{'ID':<38} {header}")
    print('-' * 80)
    for item in items:
        print(f"{item.id:<38} {item.name}")


def run_dry_run(input_path: str) -> int:
    """Parse the input and print every entry without contacting Teamleader"""
    try:
        entries = read_work_entries(input_path)
    except FileNotFoundError as e:
        print(e)
        return 1

    for i, e in enumerate(entries, 1):
        billable = 'Unknown' if e.billable is None else ('Yes' if e.billable else 'No')
        print(f"Entry #{i}")
        print(f"  Company: {e.company}")
        print(f"  Project: {e.project}")
        print(f"  Group:   {e.group}")
        print(f"  Task:    {e.task}")
        print(f"  Start:   {e.start}")
        print(f"  End:     {e.end}")
        print(f"  Billable: {billable}")
        print(f"  Tickets: {', '.join(e.ticket_ids) if e.ticket_ids else '-'}")
        print(f"  Notes:   {e.notes}")
        print()

    print(f"Dry-run complete. Parsed {len(entries)} entries.")
    return 0


def exchange_code(token_manager: TokenManager, redirect_url: str) -> int:
    """Exchange the code in a pasted redirect URL and save the token"""
    params, redirect_uri = parse_redirect_url(redirect_url)
    code = params.get('code')
    if not code:
        logger.error("No 'code' parameter found in redirect URL.")
        return 1

    logger.info("Exchanging authorization code for access token...")
    token = token_manager.exchange_authorization_code(code, redirect_uri)
    if token is None:
        logger.error("Token exchange failed.")
        return 1

    path = token_manager.save_token(token)
    logger.info(f"Token saved to: {path}")
    logger.info(f"Expires in: {token.expires_in} seconds (obtained at {token.obtained_at.isoformat()})")
    logger.info("Authentication complete. You can now run the importer without --auth-test.")
    return 0


def run_auth_test(token_manager: TokenManager) -> int:
    """Interactive OAuth authorization-code flow"""
    state = 'st-' + uuid.uuid4().hex[:8]
    logger.info("Interactive OAuth Authorization Code flow (manual steps):")
    print("1) Open the following URL in your browser and authorize the app:")
    print(token_manager.build_authorize_url(state))
    print()
    print("2) After consenting you will be redirected to your redirect URI. "
          "Copy the full redirect URL (including ?code=...) and paste it here.")
    redirect_url = input("Redirect URL> ").strip()
    if not redirect_url:
        logger.error("No redirect URL provided. Aborting.")
        return 1
    return exchange_code(token_manager, redirect_url)


def run_listing(client: TeamleaderClient, what: str) -> int:
    """Print companies, projects, project groups, tasks or time entries"""
    fetchers = {
        'companies': client.list_companies,
        'projects': client.list_all_projects,
        'projectgroups': client.list_all_project_groups,
        'tasks': client.list_all_tasks,
    }
    logger.info(f"Fetching {what} from Teamleader...")
    try:
        if what == 'timetracking':
            entries = client.list_time_tracking()
            if not entries:
                logger.info("No time tracking entries found.")
                return 0
            logger.info(f"Found {len(entries)} time tracking entries:")
            print()
            print(f"{'ID':<38} {'Started':<26} {'Duration':<10} Description")
            print('-' * 100)
            for entry in entries:
                seconds = entry.get('duration')
                if isinstance(seconds, dict):
                    seconds = seconds.get('value')
                duration = '--:--:--'
                if seconds:
                    seconds = int(seconds)
                    duration = f"{seconds // 3600:02d}:{seconds % 3600 // 60:02d}:{seconds % 60:02d}"
                desc = entry.get('description') or '(no description)'
                if len(desc) > 40:
                    desc = desc[:37] + '...'
                print(f"{entry.get('id', ''):<38} {entry.get('started_on') or entry.get('started_at') or 'N/A':<26} {duration:<10} {desc}")
            return 0

        items = fetchers[what]()
    except (requests.exceptions.RequestException, ValueError) as e:
        logger.error(f"Failed to fetch {what} from API: {e}")
        return 1

    if not items:
        logger.info(f"No {what} found.")
        return 0
    logger.info(f"Found {len(items)} {what}:")
    print_table(items, header='Title' if what == 'tasks' else 'Name')
    return 0


def run_import(client: TeamleaderClient, input_path: str, settings) -> int:
    try:
        entries = read_work_entries(input_path)
    except FileNotFoundError as e:
        logger.error(str(e))
        return 1

    policy = settings.creation_policy
    logger.info(f"Creation policy: companies={policy.create_companies}, projects={policy.create_projects}, "
                f"groups={policy.create_groups}, tasks={policy.create_tasks}")

    summary = ImportSummary()
    import_to_teamleader(client, entries, policy, summary)
    summary.print_summary()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Import time-tracking CSV exports into Teamleader',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py appsettings.json export.csv
  python main.py --dry-run appsettings.json export.csv
  python main.py appsettings.json --auth-test
  python main.py appsettings.json --list-projects
        """
    )
    parser.add_argument('config', nargs='?', default=DEFAULT_CONFIG_PATH,
                        help=f'Path to appsettings.json (default: {DEFAULT_CONFIG_PATH})')
    parser.add_argument('input', nargs='?', default=DEFAULT_INPUT_PATH,
                        help=f'Path to the CSV export (default: {DEFAULT_INPUT_PATH})')
    parser.add_argument('--dry-run', action='store_true', help='Parse the input and print the entries only')
    parser.add_argument('--auth-test', action='store_true', help='Run the interactive OAuth flow')
    parser.add_argument('--exchange-code', metavar='REDIRECT_URL', help='Exchange the code from a redirect URL')

    listing = parser.add_mutually_exclusive_group()
    for what in ('companies', 'projects', 'projectgroups', 'tasks', 'timetracking'):
        listing.add_argument(f'--list-{what}', dest='list_what', action='store_const', const=what,
                             help=f'List {what} in Teamleader')
    return parser


def main(argv=None) -> int:
    """Main execution function"""
    args = build_parser().parse_args(argv)
    setup_logging()

    if args.dry_run:
        return run_dry_run(args.input)

    try:
        settings = load_settings(args.config)
    except (FileNotFoundError, ValueError) as e:
        logger.error(str(e))
        return 1

    config_dir = os.path.dirname(os.path.abspath(args.config))
    token_manager = TokenManager(settings, config_dir)

    if args.auth_test or args.exchange_code:
        if settings.authentication is None or not settings.authentication.has_credentials:
            logger.error("ClientId/ClientSecret not found in config. Add them under Authentication.")
            return 1
        if args.exchange_code:
            return exchange_code(token_manager, args.exchange_code)
        return run_auth_test(token_manager)

    token = token_manager.acquire_token()
    if not token:
        logger.error(f"No usable access token (looked for {TOKEN_FILE_NAME} in {config_dir}).")
        return 1

    client = TeamleaderClient(token, settings.base_url)

    if args.list_what:
        return run_listing(client, args.list_what)

    logger.info("\n" + "="*60)
    logger.info("TEAMLEADER TIME-TRACKING IMPORT")
    logger.info("="*60 + "\n")
    return run_import(client, args.input, settings)


if __name__ == '__main__':
    sys.exit(main())
