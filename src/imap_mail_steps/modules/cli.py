"""CLI command implementations for IMAP Mail Steps."""

import json
import logging
import sys
from pathlib import Path

from imapclient.exceptions import IMAPClientError

from .context import ExecutionContext, output_item
from .email_actions import KEY_REMOVE_CUSTOM_FLAGS, KEY_SET_CUSTOM_FLAGS, STANDARD_FLAGS
from .imap_client import ImapClient
from .imap_errors import ImapOperationError
from .registry import get_operation
from .report import write_outputs
from ..utils.date_utils import parse_email_date, render_regional_civiltime

logger = logging.getLogger(__name__)

_STANDARD_FLAG_NAMES = {flag.lstrip("\\").lower(): flag for flag in STANDARD_FLAGS}


def run_operation(config, account_name, operation_value, items, continue_on_fail=False, output_path=None):
    """Connect to one account, run a step for every item and write its output.

    Parameters
    ----------
    config : AppConfig
        Application configuration.
    account_name : str or None
        Account to use; may be omitted when exactly one is configured.
    operation_value : str
        Registered operation value, e.g. ``getEmailsList``.
    items : list[dict]
        Parameter values, one dict per input item.
    """
    try:
        operation = get_operation(operation_value)
    except KeyError as exc:
        logger.error("%s", exc.args[0])
        sys.exit(1)

    account = _select_account(config, account_name)
    context = ExecutionContext(operation=operation, items=items, continue_on_fail=continue_on_fail)

    client = ImapClient(account, debug_logs=config.debug_imap_logs)
    try:
        client.connect()
    except Exception:  # pylint: disable=broad-exception-caught
        logger.error("Failed to connect to account '%s'", account.name, exc_info=True)
        sys.exit(1)

    try:
        results = execute_operation(context, client)
    except ImapOperationError as exc:
        logger.error("%s", exc.message)
        logger.error("%s", exc.description)
        sys.exit(1)
    except (IMAPClientError, ValueError) as exc:
        logger.error("Operation '%s' failed: %s", operation.value, exc)
        sys.exit(1)
    finally:
        client.disconnect()

    write_outputs(results, config.output_dir, output_path)
    logger.info("Operation '%s': %d input item(s), %d output item(s)", operation.value, len(items), len(results))
    return results


def execute_operation(context, client):
    """Execute ``context.operation`` once per input item and collect the output items.

    With ``continue_on_fail`` a failing item yields an ``{"error": ...}`` item
    instead of aborting the run.
    """
    results = []
    for item_index in range(len(context.items)):
        try:
            results.extend(context.operation.execute(context, item_index, client) or [])
        except (ImapOperationError, IMAPClientError, ValueError) as exc:
            if not context.continue_on_fail:
                raise
            logger.warning("Item %d failed: %s", item_index, exc)
            error = {"error": getattr(exc, "message", str(exc))}
            if isinstance(exc, ImapOperationError):
                error["description"] = exc.description
            results.append(output_item(error, item_index=item_index))
    return results


def run_parse_date(values):
    """Print the normalized and rendered form of each date string."""
    for value in values:
        parsed = parse_email_date(value)
        rendered = render_regional_civiltime(parsed) if parsed and parsed != value else None
        print(json.dumps({"input": value, "parsed": parsed, "rendered": rendered}, ensure_ascii=False))


def run_render_date(values):
    """Print the Central European rendering of each canonical instant."""
    for value in values:
        print(json.dumps({"input": value, "rendered": render_regional_civiltime(value)}, ensure_ascii=False))


# ------------------------------------------------------------------
# Input items
# ------------------------------------------------------------------


def flag_changes_from_names(set_names, remove_names):
    """Build a flags collection from ``--set`` / ``--remove`` names.

    Standard flags may be given as ``Seen`` or ``\\Seen``; anything else is a
    custom keyword.
    """
    flags = {}
    custom_set = []
    custom_remove = []
    for names, value, custom in ((set_names, True, custom_set), (remove_names, False, custom_remove)):
        for name in names or []:
            standard = _STANDARD_FLAG_NAMES.get(name.lstrip("\\").lower())
            if standard:
                flags[standard] = value
            else:
                custom.append(name)
    if custom_set:
        flags[KEY_SET_CUSTOM_FLAGS] = " ".join(custom_set)
    if custom_remove:
        flags[KEY_REMOVE_CUSTOM_FLAGS] = " ".join(custom_remove)
    return flags


def load_items(items_path, base_params):
    """Load input items from a JSON file; each item overrides *base_params*.

    Without a file a single item made of *base_params* is returned.
    """
    if not items_path:
        return [dict(base_params)]

    path = Path(items_path)
    try:
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
    except (json.JSONDecodeError, OSError) as exc:
        logger.error("Failed to read items file %s: %s", path, exc)
        sys.exit(1)

    if isinstance(raw, dict):
        raw = [raw]
    if not isinstance(raw, list) or not all(isinstance(item, dict) for item in raw):
        logger.error("Items file %s must contain a JSON object or a list of objects", path)
        sys.exit(1)
    return [{**base_params, **item} for item in raw]


def _select_account(config, account_name):
    if account_name:
        if account_name not in config.accounts:
            logger.error("Unknown account '%s' (configured: %s)", account_name, ", ".join(config.accounts))
            sys.exit(1)
        return config.accounts[account_name]
    if len(config.accounts) > 1:
        logger.error("Several accounts configured; choose one with --account (%s)", ", ".join(config.accounts))
        sys.exit(1)
    return next(iter(config.accounts.values()))
