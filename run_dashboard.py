#!/usr/bin/env python3
"""
Practice Metrics Dashboard - Command-line execution

Loads the dashboard data once and saves it as JSON plus per-chart CSV files.

Usage:
    python run_dashboard.py --token <access token>
    python run_dashboard.py --config config/dashboard.yml --output-dir output
    python run_dashboard.py --sample

The access token may also come from CLIO_ACCESS_TOKEN, CLIO_API_TOKEN or
CLIO_API_KEY (a .env file in the working directory is honoured).
"""

import argparse
import asyncio
import os
import sys
from pathlib import Path
from datetime import datetime

from dotenv import load_dotenv

# Add the project root to the path
sys.path.insert(0, str(Path(__file__).parent))

from practice_metrics import AuthExpiredError, DashboardAssembler, DashboardError
from practice_metrics.core.loader import DashboardLoader
from practice_metrics.utils.logger import mask_token, setup_logging

TOKEN_ENV_VARS = ('CLIO_ACCESS_TOKEN', 'CLIO_API_TOKEN', 'CLIO_API_KEY')


def resolve_token(explicit=None):
    """Explicit token first, then the first populated environment variable."""
    if explicit:
        return explicit
    for name in TOKEN_ENV_VARS:
        value = os.getenv(name)
        if value:
            return value
    return None


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Build practice analytics dashboard data")
    parser.add_argument('--token', help="OAuth2 access token for the practice-management API")
    parser.add_argument('--config', help="YAML configuration file")
    parser.add_argument('--output-dir', help="Directory for dashboard output files")
    parser.add_argument('--log-level', default='INFO', help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument('--sample', action='store_true', help="Write sample data instead of fetching")
    parser.add_argument('--no-save', action='store_true', help="Print a summary without writing files")
    return parser.parse_args(argv)


def print_summary(dashboard):
    """Print the dashboard headline figures."""
    print("\n" + "=" * 60)
    print("📈 DASHBOARD SUMMARY")
    print("=" * 60)
    print(f"💰 Deposits this month: {dashboard.monthly_deposits:,.2f}")

    print(f"⏱️  Attorneys with billable hours: {len(dashboard.attorney_billable_hours)}")
    for entry in dashboard.attorney_billable_hours[:5]:
        print(f"   - {entry.name}: {entry.hours:,.2f}h")

    if dashboard.weekly_revenue:
        latest = dashboard.weekly_revenue[-1]
        print(f"📅 Week of {latest.week}: {latest.amount:,.2f}")

    ytd_revenue = sum(point.value for point in dashboard.ytd_revenue)
    ytd_hours = sum(point.value for point in dashboard.ytd_time)
    print(f"📊 Year to date: {ytd_revenue:,.2f} revenue, {ytd_hours:,.2f} hours")


def main(argv=None):
    """Main execution function."""
    load_dotenv()
    args = parse_args(argv)
    setup_logging(args.log_level)

    print(f"🚀 Starting dashboard load at {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")

    token = resolve_token(args.token)

    try:
        assembler = DashboardAssembler(access_token=token, config_path=args.config)
        if args.sample:
            dashboard = assembler.get_sample_data()
        else:
            if not token:
                print(f"❌ Error: no access token. Pass --token or set one of {', '.join(TOKEN_ENV_VARS)}")
                return 2
            print(f"🔑 Using token {mask_token(token)}")
            dashboard = asyncio.run(assembler.get_dashboard_data())
    except AuthExpiredError as e:
        print(f"❌ Authorization failed: {e}")
        print("   Re-authenticate and try again.")
        return 2
    except DashboardError as e:
        print(f"❌ Dashboard load failed: {e}")
        return 1

    print_summary(dashboard)

    if not args.no_save:
        output_dir = Path(args.output_dir or assembler.config.get('output_dir', 'output'))
        loader = DashboardLoader(assembler.config, output_dir)
        saved = loader.save_dashboard(dashboard, assembler.last_report)
        print("📄 Output files:")
        for file_path in saved:
            print(f"   - {file_path}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
