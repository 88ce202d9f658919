from __future__ import annotations

import argparse
import json

from enoma_api.metrics import METRICS_WINDOW_DAYS, collect_dashboard_metrics


def main() -> None:
    parser = argparse.ArgumentParser(description="Print page metrics for a page owner")
    parser.add_argument("auth_id", help="Supabase user id that owns the page")
    parser.add_argument("--days", type=int, default=METRICS_WINDOW_DAYS)
    args = parser.parse_args()

    metrics = collect_dashboard_metrics(args.auth_id, window_days=args.days)
    print(json.dumps(metrics, indent=2, default=str))


if __name__ == "__main__":
    main()
