import re

from portal.transaction_ids import format_transaction_id, generate, validate


def test_generate_is_unique_and_valid():
    ids = [generate() for _ in range(1000)]
    assert len(set(ids)) == 1000
    assert all(validate(i) for i in ids)


def test_generate_layout():
    tid = generate()
    prefix, day, millis, suffix = tid.split("-")
    assert prefix == "QR"
    assert re.fullmatch(r"\d{8}", day)
    assert re.fullmatch(r"\d{13}", millis)
    assert re.fullmatch(r"[A-Z0-9]{6}", suffix)


def test_other_prefix_is_well_formed_but_does_not_validate():
    tid = generate("PR")
    assert tid.startswith("PR-")
    assert not validate(tid)


def test_validate_rejects_malformed():
    assert not validate("")
    assert not validate(None)
    assert not validate("QR-2024120-1701234567890-ABC123")
    assert not validate("QR-20241201-1701234567890-abc123")
    assert not validate("QR-20241201-1701234567890-ABC123\n")
    assert validate("QR-20241201-1701234567890-ABC123")


def test_format_masks_timestamp_only():
    assert format_transaction_id("QR-20241201-1701234567890-ABC123") == "QR-20241201-***-ABC123"
    assert format_transaction_id("not-an-id") == "not-an-id"
