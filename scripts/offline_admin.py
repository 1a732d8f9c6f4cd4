# Inspect, sync or reset the local offline store
from __future__ import annotations
import argparse
import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from invoice_core.config import load_settings
from invoice_core.errors import ConfigurationError
from invoice_core.logging import setup_logging
from invoice_core.offline import create_data_service


def show_status(service) -> None:
    status = service.get_status()
    connection = status["connection"]
    print(f"Status:          {connection['status']}")
    print(f"Pending changes: {status['pending_sync']}")
    store = status["local_store"]
    print(f"Local store:     {'available' if store['available'] else 'UNAVAILABLE'}")
    if store["error"]:
        print(f"  Error: {store['error']['message']}")

    for entry in service.pending_entries():
        print(f"  - {entry.timestamp} {entry.operation.value:<6} {entry.collection}/{entry.record_id} (by {entry.user_id})")


def main():
    parser = argparse.ArgumentParser(description="Offline store maintenance")
    parser.add_argument("command", choices=["status", "sync", "reset"])
    parser.add_argument("--yes", action="store_true", help="Confirm a destructive reset")
    parser.add_argument("--log-level", default="WARNING", help="Logging level (default: WARNING)")
    args = parser.parse_args()

    setup_logging(level=args.log_level, log_to_file=False)
    settings = load_settings({"start_monitoring": False, "background_sync": False})
    try:
        service = create_data_service(settings)
    except ConfigurationError as e:
        print(f"ERROR: {e.message}")
        return 1

    try:
        if args.command == "status":
            show_status(service)
        elif args.command == "sync":
            result = service.sync_now()
            if result is None:
                print("Nothing synced: offline or a sync is already running")
            else:
                print(f"Synced {result.succeeded}, failed {result.failed}, pending {service.pending_count}")
        elif args.command == "reset":
            pending = service.pending_count
            if not args.yes:
                print(f"Refusing to reset: {pending} unsynced changes would be lost. Re-run with --yes.")
                return 1
            ok = service.force_upgrade()
            print("Local store recreated" if ok else "Local store could not be recreated")
            return 0 if ok else 1
    finally:
        service.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
