"""Unit tests for step output writing."""

import json

from imap_mail_steps.modules.context import output_item, prepare_binary_data
from imap_mail_steps.modules.report import serialize_items, write_outputs


def test_serialize_items_writes_binary_files(tmp_path):
    items = [
        output_item({"uid": "1"}, binary={"data": prepare_binary_data(b"raw eml", "INBOX/Sub_1.eml")}),
        output_item({"uid": "2"}, binary={"data": prepare_binary_data(b"second", "INBOX/Sub_1.eml")}),
    ]
    serialized = serialize_items(items, tmp_path)

    first = serialized[0]["binary"]["data"]
    second = serialized[1]["binary"]["data"]
    assert first["fileName"] == "INBOX/Sub_1.eml"
    assert first["fileSize"] == 7
    assert first["path"] != second["path"]
    assert (tmp_path / "INBOX_Sub_1.eml").read_bytes() == b"raw eml"
    assert (tmp_path / "INBOX_Sub_1_1.eml").read_bytes() == b"second"
    assert serialized[0]["json"] == {"uid": "1"}


def test_write_outputs_to_file(tmp_path):
    out = tmp_path / "result" / "items.json"
    write_outputs([output_item({"subject": "Objednávka"}, item_index=0)], tmp_path, out)
    data = json.loads(out.read_text(encoding="utf-8"))
    assert data == [{"json": {"subject": "Objednávka"}, "pairedItem": {"item": 0}}]


def test_write_outputs_to_stdout(tmp_path, capsys):
    write_outputs([output_item({"uid": 5})], tmp_path)
    assert json.loads(capsys.readouterr().out) == [{"json": {"uid": 5}}]
