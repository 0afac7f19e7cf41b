import re

from domain.services.transaction_id import TransactionIdGenerator


def test_id_shape():
    tid = TransactionIdGenerator().next_id()
    assert re.fullmatch(r"TXN\d{13,}[0-9A-Z]{9}", tid)


def test_ids_are_unique_and_time_ordered():
    gen = TransactionIdGenerator()
    ids = [gen.next_id() for _ in range(500)]
    assert len(set(ids)) == len(ids)
    stamps = [int(tid[3:-9]) for tid in ids]
    assert stamps == sorted(stamps)
    assert len(set(stamps)) == len(stamps)


def test_clock_never_goes_backwards(monkeypatch):
    import domain.services.transaction_id as mod

    gen = TransactionIdGenerator(prefix="T", suffix_length=4)
    monkeypatch.setattr(mod.time, "time_ns", lambda: 1_700_000_000_000 * 1_000_000)
    first = gen.next_id()
    second = gen.next_id()
    assert int(first[1:-4]) == 1_700_000_000_000
    assert int(second[1:-4]) == 1_700_000_000_001
