import json
import tempfile
import unittest
from dataclasses import replace
from pathlib import Path

from newspledge.config_loader import GenesisConfig
from newspledge.ledger import (
    Journal,
    ReplayError,
    TokenLedger,
    read_jsonl,
    replay_journal,
    replay_matches,
    verify_hash_chain,
    write_jsonl,
)
from newspledge.ledger.events import GENESIS_HASH

from conftest import ADMIN, ALICE, BOB, CAROL, LOCK


def _busy_ledger() -> TokenLedger:
    ledger = TokenLedger(GenesisConfig(admin=ADMIN, stake_lock_period=LOCK))
    ledger.set_delegate_admin(ADMIN, BOB)
    ledger.mint(BOB, ALICE, 1000)
    ledger.transfer(ALICE, CAROL, 250)
    ledger.approve(CAROL, BOB, 100)
    ledger.transfer_from(BOB, CAROL, ALICE, 60)
    ledger.stake(ALICE, 400, 10)
    ledger.unstake(ALICE, 150, 10 + LOCK)
    ledger.burn(CAROL, 40)
    ledger.set_paused(ADMIN, True)
    return ledger


class JournalTests(unittest.TestCase):
    def test_only_applied_operations_are_journaled(self):
        ledger = TokenLedger(GenesisConfig(admin=ADMIN))
        ledger.mint(ALICE, ALICE, 10)
        ledger.transfer(ALICE, BOB, 10)
        self.assertEqual(ledger.journal, [])
        self.assertEqual(ledger.journal_head, GENESIS_HASH)

        ledger.mint(ADMIN, ALICE, 10)
        entries = ledger.journal
        self.assertEqual(len(entries), 1)
        self.assertEqual(entries[0].event_type, "token.mint")
        self.assertEqual(entries[0].caller, ADMIN)
        self.assertEqual(entries[0].payload, {"recipient": ALICE, "amount": 10})
        self.assertEqual(entries[0].prev_hash, GENESIS_HASH)
        self.assertEqual(ledger.journal_head, entries[0].event_hash)

    def test_entries_chain_to_predecessor(self):
        entries = _busy_ledger().journal
        for prev, entry in zip(entries, entries[1:]):
            self.assertEqual(entry.prev_hash, prev.event_hash)
        self.assertEqual([e.seq for e in entries], list(range(1, len(entries) + 1)))

    def test_identical_histories_share_a_head(self):
        self.assertEqual(_busy_ledger().journal_head, _busy_ledger().journal_head)

    def test_since_returns_bounded_slice(self):
        ledger = _busy_ledger()
        self.assertEqual(ledger.journal_length, 9)
        self.assertEqual(ledger.journal_since(0), ledger.journal)
        self.assertEqual([e.seq for e in ledger.journal_since(7)], [8, 9])
        self.assertEqual([e.seq for e in ledger.journal_since(2, limit=3)], [3, 4, 5])
        self.assertEqual(ledger.journal_since(9), [])


class HashChainTests(unittest.TestCase):
    def test_chain_verifies(self):
        result = verify_hash_chain(_busy_ledger().journal)
        self.assertTrue(result.ok, result.detail)

    def test_empty_chain_verifies(self):
        self.assertTrue(verify_hash_chain([]).ok)

    def test_tampered_payload_detected(self):
        entries = _busy_ledger().journal
        entries[1] = replace(entries[1], payload_json=entries[1].payload_json.replace("1000", "9000"))
        result = verify_hash_chain(entries)
        self.assertFalse(result.ok)
        self.assertIn("seq=2", result.detail)

    def test_dropped_entry_detected(self):
        entries = _busy_ledger().journal
        del entries[3]
        self.assertFalse(verify_hash_chain(entries).ok)


class ReplayTests(unittest.TestCase):
    def test_replay_reproduces_live_state(self):
        ledger = _busy_ledger()
        result = replay_matches(ledger)
        self.assertTrue(result.ok, result.detail)

        replayed = replay_journal(ledger.genesis, ledger.journal)
        self.assertEqual(replayed.snapshot().state_dict(), ledger.snapshot().state_dict())
        self.assertEqual(replayed.journal_head, ledger.journal_head)

    def test_replay_rejects_invalid_transition(self):
        journal = Journal()
        journal.append(event_type="token.transfer", caller=ALICE, payload={"recipient": BOB, "amount": 5})
        with self.assertRaises(ReplayError):
            replay_journal(GenesisConfig(admin=ADMIN), journal.entries())

    def test_replay_rejects_unknown_operation(self):
        journal = Journal()
        journal.append(event_type="token.snapshot", caller=ADMIN, payload={})
        with self.assertRaises(ReplayError):
            replay_journal(GenesisConfig(admin=ADMIN), journal.entries())

    def test_replay_rejects_malformed_payload(self):
        journal = Journal()
        journal.append(event_type="token.mint", caller=ADMIN, payload={"recipient": ALICE, "amount": "10"})
        with self.assertRaises(ReplayError):
            replay_journal(GenesisConfig(admin=ADMIN), journal.entries())


class JsonLinesTests(unittest.TestCase):
    def test_export_and_read_back(self):
        ledger = _busy_ledger()
        with tempfile.TemporaryDirectory() as temp_dir:
            path = ledger.export_journal(Path(temp_dir) / "audit" / "journal.jsonl")
            header, entries = read_jsonl(path)

        self.assertEqual(GenesisConfig(**header), ledger.genesis)
        self.assertEqual(entries, ledger.journal)

    def test_headerless_file(self):
        ledger = _busy_ledger()
        with tempfile.TemporaryDirectory() as temp_dir:
            path = write_jsonl(Path(temp_dir) / "journal.jsonl", ledger.journal)
            header, entries = read_jsonl(path)
        self.assertIsNone(header)
        self.assertEqual(len(entries), len(ledger.journal))

    def test_corrupt_line_reports_position(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "journal.jsonl"
            path.write_text(json.dumps({"kind": "entry", "seq": 1}) + "\n{not json\n")
            with self.assertRaises(ValueError) as ctx:
                read_jsonl(path)
        self.assertIn(":1:", str(ctx.exception))


if __name__ == "__main__":
    unittest.main()

    def _read_lines(self, *lines):
        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "journal.jsonl"
            path.write_text("\n".join(lines) + "\n")
            with self.assertRaises(ValueError) as ctx:
                read_jsonl(path)
        return str(ctx.exception)

    def test_non_object_line_rejected(self):
        message = self._read_lines("[1, 2]")
        self.assertIn(":1:", message)
        self.assertIn("expected a JSON object", message)

    def test_genesis_without_config_rejected(self):
        message = self._read_lines(json.dumps({"kind": "genesis"}))
        self.assertIn(":1:", message)
        self.assertIn("'config'", message)

    def test_null_sequence_number_rejected(self):
        record = {"kind": "entry", **_busy_ledger().journal[0].to_dict()}
        bad = dict(record, seq=None)
        message = self._read_lines(json.dumps(record), json.dumps(bad))
        self.assertIn(":2:", message)
        self.assertIn("malformed entry", message)
