"""IMAP client for connecting to mail servers and running mailbox commands."""

import logging
import re
import ssl

from imapclient import IMAPClient

from .body_parts import find_part
from ..utils.email_utils import decode_transfer_encoding

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 30

_RE_COPYUID = re.compile(r"^(?:COPYUID\s+)?(\d+)\s+([\d:,]+)\s+([\d:,]+)", re.ASCII | re.IGNORECASE)


def _expand_uid_set(uid_set):
    """``"1:3,7"`` -> ``[1, 2, 3, 7]``"""
    uids = []
    for chunk in uid_set.split(","):
        if ":" in chunk:
            start, end = (int(v) for v in chunk.split(":", 1))
            step = 1 if end >= start else -1
            uids.extend(range(start, end + step, step))
        elif chunk:
            uids.append(int(chunk))
    return uids


def parse_copyuid(data):
    """Extract ``(uid_validity, {source_uid: destination_uid})`` from COPYUID data.

    *data* is what imaplib collects under the ``COPYUID`` response code, e.g.
    ``[b"1700000000 1:3 101:103"]``; the last entry is the newest.
    Returns ``(None, {})`` when the server sent no COPYUID (no UIDPLUS).
    """
    if not data:
        return None, {}
    if isinstance(data, (list, tuple)):
        data = data[-1]
    if isinstance(data, bytes):
        data = data.decode("ascii", errors="replace")
    match = _RE_COPYUID.match(str(data).strip())
    if not match:
        return None, {}
    uid_validity = int(match.group(1))
    source = _expand_uid_set(match.group(2))
    destination = _expand_uid_set(match.group(3))
    return uid_validity, dict(zip(source, destination))


def _to_uids(uids):
    if isinstance(uids, (str, int)):
        uids = [uids]
    return [int(uid) for uid in uids]


class ImapClient:
    """Connects to an IMAP server and runs mailbox commands by UID."""

    def __init__(self, account, debug_logs=False, timeout=_DEFAULT_TIMEOUT):
        self.account = account
        self.debug_logs = debug_logs
        self.timeout = timeout
        self.selected_mailbox = None
        self._conn = None

    @property
    def conn(self):
        if not self._conn:
            raise RuntimeError("Not connected. Call connect() first.")
        return self._conn

    def _ssl_context(self):
        context = ssl.create_default_context()
        if self.account.allow_unauthorized_certs:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        return context

    def connect(self):
        """Establish connection and authenticate."""
        logging.getLogger("imapclient").setLevel(logging.DEBUG if self.debug_logs else logging.WARNING)

        security = self.account.security
        host = self.account.host
        port = self.account.port
        context = self._ssl_context()

        if security == "ssl":
            self._conn = IMAPClient(host, port=port, ssl=True, ssl_context=context, timeout=self.timeout)
        else:
            self._conn = IMAPClient(host, port=port, ssl=False, timeout=self.timeout)
            if security == "starttls":
                self._conn.starttls(context)
            elif security == "starttls_if_supported" and self._conn.has_capability("STARTTLS"):
                self._conn.starttls(context)

        self._conn.login(self.account.username, self.account.password)
        logger.info("Connected to %s as %s", host, self.account.username)

    def open_mailbox(self, path, readonly=False):
        """SELECT *path*; returns the server's select info."""
        info = self.conn.select_folder(path, readonly=readonly)
        self.selected_mailbox = path
        logger.debug("Opened mailbox %s (readonly=%s)", path, readonly)
        return info

    def search(self, criteria):
        return self.conn.search(criteria or ["ALL"])

    def find_by_message_id(self, pattern):
        """UIDs of messages whose Message-ID header contains *pattern*."""
        return self.conn.search(["HEADER", "Message-ID", pattern])

    def fetch(self, uids, items):
        return self.conn.fetch(_to_uids(uids), items)

    def fetch_source(self, uid):
        """Full RFC 822 source of one message, or None if the server returned nothing."""
        uid = int(uid)
        data = self.conn.fetch([uid], ["BODY.PEEK[]"])
        return data.get(uid, {}).get(b"BODY[]")

    def fetch_bodystructure(self, uid):
        uid = int(uid)
        data = self.conn.fetch([uid], ["BODYSTRUCTURE"])
        return data.get(uid, {}).get(b"BODYSTRUCTURE")

    def download_part(self, uid, part_id, bodystructure=None):
        """Download one MIME part, undoing its transfer encoding.

        Returns
        -------
        tuple[bytes | None, dict | None]
            ``(content, meta)``; ``meta`` is None when *part_id* does not
            exist in the message.
        """
        uid = int(uid)
        if bodystructure is None:
            bodystructure = self.fetch_bodystructure(uid)
        info = find_part(bodystructure, part_id) if bodystructure else None
        if info is None:
            return None, None

        data = self.conn.fetch([uid], [f"BODY.PEEK[{part_id}]"])
        raw = data.get(uid, {}).get(f"BODY[{part_id}]".encode())
        content = decode_transfer_encoding(raw, info.encoding)
        meta = {
            "filename": info.filename or f"part_{part_id}",
            "contentType": info.type,
            "encoding": info.encoding,
            "size": len(content),
        }
        return content, meta

    def _take_copyuid(self):
        # imaplib files the COPYUID response code under untagged_responses
        # and never clears it; IMAPClient.copy()/move() do not return it
        return self.conn._imap.untagged_responses.pop("COPYUID", None)  # pylint: disable=protected-access

    def _copy_result(self, destination, copyuid):
        uid_validity, uid_map = parse_copyuid(copyuid)
        return {
            "path": self.selected_mailbox,
            "destination": destination,
            "uidValidity": uid_validity,
            "uidMap": {str(src): str(dst) for src, dst in uid_map.items()},
        }

    def copy(self, uids, destination):
        self._take_copyuid()
        self.conn.copy(_to_uids(uids), destination)
        return self._copy_result(destination, self._take_copyuid())

    def move(self, uids, destination):
        """MOVE when the server supports it, otherwise COPY + \\Deleted + EXPUNGE."""
        uids = _to_uids(uids)
        self._take_copyuid()
        if self.conn.has_capability("MOVE"):
            self.conn.move(uids, destination)
            copyuid = self._take_copyuid()
        else:
            logger.debug("Server lacks MOVE; falling back to COPY + EXPUNGE")
            self.conn.copy(uids, destination)
            copyuid = self._take_copyuid()
            self.conn.delete_messages(uids)
            self._expunge(uids)
        return self._copy_result(destination, copyuid)

    def delete(self, uids):
        uids = _to_uids(uids)
        self.conn.delete_messages(uids)
        self._expunge(uids)

    def _expunge(self, uids):
        # UID EXPUNGE only removes the given messages; plain EXPUNGE removes every \Deleted one
        if self.conn.has_capability("UIDPLUS"):
            self.conn.expunge(uids)
        else:
            self.conn.expunge()

    def add_flags(self, uids, flags):
        return self.conn.add_flags(_to_uids(uids), flags)

    def remove_flags(self, uids, flags):
        return self.conn.remove_flags(_to_uids(uids), flags)

    def disconnect(self):
        """Close the IMAP connection gracefully."""
        if self._conn:
            try:
                self._conn.logout()
            except Exception:  # pylint: disable=broad-except
                pass
            self._conn = None
            self.selected_mailbox = None
            logger.info("Disconnected from %s", self.account.host)
