from __future__ import annotations

import argparse
import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime

from chillertrack.accounting.models import TotalsLedger
from chillertrack.config import Settings
from chillertrack.domain.inventory import InventoryEntry, ensure_utc
from chillertrack.errors import PersistenceError, ValidationError
from chillertrack.logging_context import with_command_context, with_logging_context
from chillertrack.logging_utils import setup_logging
from chillertrack.persistence.uow import UnitOfWorkFactory
from chillertrack.runtime.guards import normalize_db_path
from chillertrack.services.entry_service import EntryService
from chillertrack.services.pays_service import PaysService
from chillertrack.services.totals_service import TotalsService

logger = logging.getLogger(__name__)

DESTRUCTIVE_COMMANDS = frozenset(
    {
        "delete-entry",
        "reset-all",
        "reset-chiller",
        "reset-goats",
        "paid-reset",
        "full-reset",
        "loadout-reset",
    }
)


@dataclass(frozen=True)
class Runtime:
    totals: TotalsService
    entries: EntryService
    pays: PaysService


def build_runtime(settings: Settings, db_path: str) -> Runtime:
    totals = TotalsService.from_settings(settings, db_path=db_path)
    entries = EntryService(UnitOfWorkFactory(db_path), totals)
    pays = PaysService.from_settings(settings, db_path=db_path)
    return Runtime(totals=totals, entries=entries, pays=pays)


def _print_json(payload: object) -> None:
    print(json.dumps(payload, sort_keys=True, default=str))


def _ledger_view(ledger: TotalsLedger) -> dict[str, object]:
    payload = ledger.to_payload()
    payload["grand_total"] = str(ledger.grand_total)
    payload["grand_kilograms"] = str(ledger.grand_kilograms)
    return payload


def _entry_view(entry: InventoryEntry) -> dict[str, object]:
    return {
        "id": entry.id,
        "category": entry.category,
        "chiller": entry.chiller,
        "total": str(entry.total),
        "kilograms": str(entry.kilograms),
        "created_at": entry.created_at.isoformat(),
        "loaded_out": entry.loaded_out,
        "worker_name": entry.worker_name,
        "shooter_name": entry.shooter_name,
    }


def _parse_cutoff(raw: str | None) -> datetime | None:
    if raw is None:
        return None
    try:
        return ensure_utc(datetime.fromisoformat(raw))
    except ValueError as exc:
        raise ValidationError(f"--cutoff must be an ISO-8601 timestamp; got {raw!r}") from exc


def _add_db_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--db",
        required=False,
        default=None,
        help="State sqlite DB path (defaults to env STATE_DB_PATH)",
    )


def _add_confirm_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--yes", action="store_true", help="Confirm a destructive command")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chillertrack",
        description="Stored chiller totals for the game depot.",
        epilog=(
            "Env overrides: STATE_DB_PATH, LOG_LEVEL, KANGAROO_PRICE_PER_KG, GOAT_PRICE_PER_KG, "
            "COMMISSION_PER_KG, GST_RATE, LEDGER_CONFLICT_DETECTION, TOTALS_DECIMAL_PLACES."
        ),
    )
    parser.add_argument(
        "--env-file",
        default=None,
        help="Optional dotenv file to read settings from",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    totals_parser = subparsers.add_parser("totals", help="Print the stored totals")
    _add_db_argument(totals_parser)

    add_parser = subparsers.add_parser("add-entry", help="Record an inventory entry")
    add_parser.add_argument("--category", required=True, help="Red, Western Grey, Eastern Grey or Goats")
    add_parser.add_argument("--total", required=True, help="Number of animals")
    add_parser.add_argument("--kg", dest="kilograms", required=True, help="Total kilograms")
    add_parser.add_argument("--chiller", default=None, help="Chiller 1-4 (not used for goats)")
    add_parser.add_argument("--worker", dest="worker_name", default=None)
    add_parser.add_argument("--shooter", dest="shooter_name", default=None)
    _add_db_argument(add_parser)

    edit_parser = subparsers.add_parser("edit-entry", help="Edit an inventory entry")
    edit_parser.add_argument("entry_id")
    edit_parser.add_argument("--total", default=None)
    edit_parser.add_argument("--kg", dest="kilograms", default=None)
    edit_parser.add_argument("--worker", dest="worker_name", default=None)
    edit_parser.add_argument("--shooter", dest="shooter_name", default=None)
    _add_db_argument(edit_parser)

    delete_parser = subparsers.add_parser("delete-entry", help="Delete an inventory entry")
    delete_parser.add_argument("entry_id")
    _add_confirm_argument(delete_parser)
    _add_db_argument(delete_parser)

    entries_parser = subparsers.add_parser("entries", help="List inventory entries")
    entries_parser.add_argument("--chiller", default=None)
    entries_parser.add_argument("--category", default=None)
    entries_parser.add_argument(
        "--active-only", action="store_true", help="Only entries not yet loaded out"
    )
    _add_db_argument(entries_parser)

    loaded_parser = subparsers.add_parser(
        "mark-loaded-out", help="Flag an entry as loaded out (totals unchanged)"
    )
    loaded_parser.add_argument("entry_id")
    _add_db_argument(loaded_parser)

    sync_parser = subparsers.add_parser(
        "sync", help="Rebuild stored totals from the active entries"
    )
    _add_db_argument(sync_parser)

    reset_all_parser = subparsers.add_parser("reset-all", help="Zero every stored total")
    _add_confirm_argument(reset_all_parser)
    _add_db_argument(reset_all_parser)

    reset_chiller_parser = subparsers.add_parser("reset-chiller", help="Zero one chiller")
    reset_chiller_parser.add_argument("--chiller", required=True)
    _add_confirm_argument(reset_chiller_parser)
    _add_db_argument(reset_chiller_parser)

    reset_goats_parser = subparsers.add_parser("reset-goats", help="Zero the goat totals")
    _add_confirm_argument(reset_goats_parser)
    _add_db_argument(reset_goats_parser)

    loadout_parser = subparsers.add_parser("loadout", help="Remove animals from a chiller")
    loadout_parser.add_argument("--chiller", required=True)
    loadout_parser.add_argument("--quantity", required=True)
    _add_db_argument(loadout_parser)

    transfer_parser = subparsers.add_parser("transfer", help="Move animals between chillers")
    transfer_parser.add_argument("--from", dest="from_chiller", required=True)
    transfer_parser.add_argument("--to", dest="to_chiller", required=True)
    transfer_parser.add_argument("--quantity", required=True)
    _add_db_argument(transfer_parser)

    paid_parser = subparsers.add_parser(
        "paid-reset", help="Clear paid entries from the log (totals unchanged)"
    )
    paid_parser.add_argument(
        "--cutoff", default=None, help="ISO-8601 timestamp; entries at or before it are cleared"
    )
    _add_confirm_argument(paid_parser)
    _add_db_argument(paid_parser)

    full_reset_parser = subparsers.add_parser(
        "full-reset", help="Delete every entry and zero every stored total"
    )
    _add_confirm_argument(full_reset_parser)
    _add_db_argument(full_reset_parser)

    loadout_reset_parser = subparsers.add_parser(
        "loadout-reset",
        help="Truck pickup: drop entries recorded before the last paid reset and zero totals",
    )
    _add_confirm_argument(loadout_reset_parser)
    _add_db_argument(loadout_reset_parser)

    pays_parser = subparsers.add_parser("pays", help="Shooter pay sheets and commission")
    _add_db_argument(pays_parser)

    return parser


def _load_settings(env_file: str | None) -> Settings:
    if env_file in (None, ""):
        return Settings()
    return Settings(_env_file=env_file)


def run_totals(runtime: Runtime) -> int:
    _print_json(_ledger_view(runtime.totals.load()))
    return 0


def run_add_entry(runtime: Runtime, args: argparse.Namespace) -> int:
    entry, ledger = runtime.entries.record_entry(
        category=args.category,
        total=args.total,
        kilograms=args.kilograms,
        chiller=args.chiller,
        worker_name=args.worker_name,
        shooter_name=args.shooter_name,
    )
    _print_json({"entry": _entry_view(entry), "totals": _ledger_view(ledger)})
    return 0


def run_edit_entry(runtime: Runtime, args: argparse.Namespace) -> int:
    entry, ledger = runtime.entries.edit_entry(
        args.entry_id,
        total=args.total,
        kilograms=args.kilograms,
        worker_name=args.worker_name,
        shooter_name=args.shooter_name,
    )
    _print_json({"entry": _entry_view(entry), "totals": _ledger_view(ledger)})
    return 0


def run_list_entries(runtime: Runtime, args: argparse.Namespace) -> int:
    entries = runtime.entries.list_entries(
        chiller=args.chiller,
        category=args.category,
        loaded_out=False if args.active_only else None,
    )
    _print_json({"entries": [_entry_view(entry) for entry in entries], "count": len(entries)})
    return 0


def run_pays(runtime: Runtime) -> int:
    entries = runtime.entries.list_entries(loaded_out=False)
    payments = runtime.pays.shooter_payments(entries)
    summary = runtime.pays.commission_summary(entries)
    _print_json(
        {
            "shooters": [
                {**asdict(payment), "grand_total": payment.grand_total} for payment in payments
            ],
            "commission": asdict(summary),
            "last_paid_at": runtime.entries.last_paid_at(),
        }
    )
    return 0


def dispatch(runtime: Runtime, args: argparse.Namespace) -> int:
    command = args.command
    if command == "totals":
        return run_totals(runtime)

    if command == "add-entry":
        return run_add_entry(runtime, args)

    if command == "edit-entry":
        return run_edit_entry(runtime, args)

    if command == "delete-entry":
        ledger = runtime.entries.delete_entry(args.entry_id)
        _print_json({"deleted": args.entry_id, "totals": _ledger_view(ledger)})
        return 0

    if command == "entries":
        return run_list_entries(runtime, args)

    if command == "mark-loaded-out":
        _print_json({"entry": _entry_view(runtime.entries.mark_loaded_out(args.entry_id))})
        return 0

    if command == "sync":
        _print_json(_ledger_view(runtime.totals.sync_with_source()))
        return 0

    if command == "reset-all":
        _print_json(_ledger_view(runtime.totals.reset_all()))
        return 0

    if command == "reset-chiller":
        _print_json(_ledger_view(runtime.totals.reset_chiller(args.chiller)))
        return 0

    if command == "reset-goats":
        _print_json(_ledger_view(runtime.totals.reset_goats()))
        return 0

    if command == "loadout":
        _print_json(_ledger_view(runtime.totals.partial_loadout(args.chiller, args.quantity)))
        return 0

    if command == "transfer":
        ledger = runtime.totals.transfer_between_chillers(
            args.from_chiller, args.to_chiller, args.quantity
        )
        _print_json(_ledger_view(ledger))
        return 0

    if command == "paid-reset":
        result = runtime.entries.paid_reset(cutoff=_parse_cutoff(args.cutoff))
        _print_json({"deleted": result.deleted, "last_paid_at": result.last_paid_at.isoformat()})
        return 0

    if command == "full-reset":
        deleted, ledger = runtime.entries.full_reset()
        _print_json({"deleted": deleted, "totals": _ledger_view(ledger)})
        return 0

    if command == "loadout-reset":
        result = runtime.entries.loadout_reset()
        _print_json(
            {
                "deleted": result.deleted,
                "last_paid_at": result.last_paid_at.isoformat() if result.last_paid_at else None,
                "totals": _ledger_view(result.ledger),
            }
        )
        return 0

    if command == "pays":
        return run_pays(runtime)

    return 1


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        settings = _load_settings(args.env_file)
    except ValueError as exc:
        print(f"Invalid configuration: {exc}")
        return 2
    setup_logging(settings.log_level)

    if args.command in DESTRUCTIVE_COMMANDS and not args.yes:
        print(f"Refusing to run {args.command} without --yes")
        return 2

    with with_command_context(args.command):
        try:
            db_path = normalize_db_path(args.db or settings.state_db_path)
            with with_logging_context(db_path=db_path):
                runtime = build_runtime(settings, str(db_path))
                logger.info("runtime_prepared")
                return dispatch(runtime, args)
        except ValidationError as exc:
            logger.warning("command_rejected", extra={"extra": {"reason": str(exc)}})
            _print_json({"error": str(exc), "error_type": type(exc).__name__})
            return 2
        except PersistenceError as exc:
            logger.error("command_persistence_failed", exc_info=True)
            _print_json({"error": str(exc), "error_type": type(exc).__name__})
            return 1


if __name__ == "__main__":
    raise SystemExit(main())
