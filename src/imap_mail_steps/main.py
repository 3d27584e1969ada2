"""CLI entry point for IMAP Mail Steps."""

import argparse
import logging
import sys

from .modules.cli import flag_changes_from_names, load_items, run_operation, run_parse_date, run_render_date
from .modules.config import load_config
from .modules.email_list import EMAIL_PARTS
from .utils.logger import setup_logging

logger = logging.getLogger(__name__)

# subcommand -> registered operation value
_COMMANDS = {
    "list": "getEmailsList",
    "copy": "copyEmail",
    "move": "moveEmail",
    "delete": "deleteEmail",
    "set-flags": "setEmailFlags",
    "download": "downloadEml",
    "download-attachment": "downloadAttachment",
}

_FLAG_OPTIONS = ("answered", "deleted", "draft", "flagged", "recent", "seen")
_FILTER_OPTIONS = ("from", "to", "cc", "bcc", "subject", "text")


def _add_target_arguments(parser, mailbox=True):
    if mailbox:
        parser.add_argument("--mailbox", help="Mailbox path (default: INBOX)")
    parser.add_argument("--uid", dest="emailUid", help="Email UID(s), comma-separated")
    parser.add_argument("--message-id", dest="messageId", help="Message-ID pattern(s), comma-separated")


def parse_args(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="imap-mail-steps",
        description="Run IMAP mailbox steps (list, copy, move, delete, flag, download) and print JSON items.",
    )
    parser.add_argument("-c", "--config", default="config.json", help="Path to config JSON file (default: config.json)")
    parser.add_argument("-a", "--account", default=None, help="Account name from the config file")
    parser.add_argument("-o", "--output", default=None, help="Write output JSON to this file instead of stdout")
    parser.add_argument("--items", default=None, help="JSON file with input items (object or list of objects)")
    parser.add_argument("--continue-on-fail", action="store_true", help="Emit error items instead of aborting")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("-q", "--quiet", action="store_true", help="Only log warnings and errors")
    parser.add_argument("--version", action="version", version="%(prog)s 0.1.0")

    sub = parser.add_subparsers(dest="command", required=True)

    p_list = sub.add_parser("list", help="List emails matching search criteria")
    p_list.add_argument("--mailbox", help="Mailbox path (default: INBOX)")
    p_list.add_argument("--since", help="Only emails on or after this date")
    p_list.add_argument("--before", help="Only emails before this date")
    for name in _FLAG_OPTIONS:
        p_list.add_argument(f"--{name}", action=argparse.BooleanOptionalAction, default=None)
    for name in _FILTER_OPTIONS:
        p_list.add_argument(f"--{name}", dest=f"filter_{name}", help=f"Case-insensitive {name} filter")
    p_list.add_argument("--uid-filter", dest="filter_uid", help="UID sequence set, e.g. 1:100")
    p_list.add_argument(
        "--include",
        dest="includeParts",
        action="append",
        choices=EMAIL_PARTS,
        help="Message part to include (repeatable)",
    )
    p_list.add_argument("--headers", dest="headersToInclude", help="Comma-separated headers; implies partial headers")

    for command in ("copy", "move"):
        p_copy = sub.add_parser(command, help=f"{command.capitalize()} emails to another mailbox")
        p_copy.add_argument("--source", dest="sourceMailbox", help="Source mailbox path")
        p_copy.add_argument("--destination", dest="destinationMailbox", help="Destination mailbox path")
        _add_target_arguments(p_copy, mailbox=False)
        if command == "move":
            p_copy.add_argument("--mark-as-seen", dest="markAsSeen", action="store_true", default=None)

    p_delete = sub.add_parser("delete", help="Delete emails")
    _add_target_arguments(p_delete)

    p_flags = sub.add_parser("set-flags", help="Set or remove email flags")
    _add_target_arguments(p_flags)
    p_flags.add_argument("--set", dest="set_flags", action="append", help="Flag to set, e.g. Seen or $label1")
    p_flags.add_argument("--remove", dest="remove_flags", action="append", help="Flag to remove")

    p_eml = sub.add_parser("download", help="Download emails as EML")
    _add_target_arguments(p_eml)
    p_eml.add_argument("--as-text", dest="outputToBinary", action="store_false", default=None)
    p_eml.add_argument("--field", dest="binaryPropertyName", help="Binary field name (default: data)")

    p_att = sub.add_parser("download-attachment", help="Download email attachments")
    _add_target_arguments(p_att)
    p_att.add_argument("--part-id", dest="partId", help="Comma-separated attachment part IDs")
    p_att.add_argument("--all", dest="allAttachments", action="store_true", default=None)
    p_att.add_argument("--include-inline", dest="includeInlineAttachments", action="store_true", default=None)

    p_parse = sub.add_parser("parse-date", help="Normalize email date strings")
    p_parse.add_argument("values", nargs="+")

    p_render = sub.add_parser("render-date", help="Render instants as Central European civil time")
    p_render.add_argument("values", nargs="+")

    return parser.parse_args(argv)


def build_params(args):
    """Collect step parameter values given on the command line.

    Options left unset are omitted so that parameter defaults apply.
    """
    params = {}
    for name in (
        "mailbox",
        "emailUid",
        "messageId",
        "sourceMailbox",
        "destinationMailbox",
        "markAsSeen",
        "outputToBinary",
        "binaryPropertyName",
        "partId",
        "allAttachments",
        "includeInlineAttachments",
        "includeParts",
    ):
        value = getattr(args, name, None)
        if value is not None:
            params[name] = value

    if args.command == "list":
        date_range = {key: getattr(args, key) for key in ("since", "before") if getattr(args, key)}
        flags = {name: getattr(args, name) for name in _FLAG_OPTIONS if getattr(args, name) is not None}
        filters = {
            name: getattr(args, f"filter_{name}")
            for name in (*_FILTER_OPTIONS, "uid")
            if getattr(args, f"filter_{name}")
        }
        if date_range:
            params["emailDateRange"] = date_range
        if flags:
            params["emailFlags"] = flags
        if filters:
            params["emailSearchFilters"] = filters
        if args.headersToInclude:
            params["includeAllHeaders"] = False
            params["headersToInclude"] = args.headersToInclude

    if args.command == "set-flags":
        flags = flag_changes_from_names(args.set_flags, args.remove_flags)
        if flags:
            params["flags"] = flags

    return params


def main():
    """Application entry point."""
    args = parse_args()
    setup_logging(verbose=args.verbose, quiet=args.quiet)

    if args.command == "parse-date":
        run_parse_date(args.values)
        return 0
    if args.command == "render-date":
        run_render_date(args.values)
        return 0

    config = load_config(args.config)
    items = load_items(args.items, build_params(args))
    logger.debug("Running %s on %d item(s)", args.command, len(items))
    run_operation(
        config,
        args.account,
        _COMMANDS[args.command],
        items,
        continue_on_fail=args.continue_on_fail,
        output_path=args.output,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
