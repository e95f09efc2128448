import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))
from editing import Edit, EditState, reconcile
from store import StorageError


def test_propose_marks_pending():
    edit = Edit("5", {"name": "Milk"})
    assert edit.state is EditState.CLEAN
    edit.propose({"name": "Oat milk"})
    assert edit.state is EditState.PENDING
    assert edit.current == {"name": "Oat milk"}


def test_reconcile_commits_stored_value():
    edit = Edit("5", {"name": "Milk"}).propose({"name": "Oat milk"})
    reconcile(edit, write=lambda v: {**v, "value": 2100}, refetch=lambda: pytest.fail("no refetch"))
    assert edit.state is EditState.COMMITTED
    assert edit.current == {"name": "Oat milk", "value": 2100}
    assert edit.proposed is None


def test_reconcile_rolls_back_to_refetched_value():
    def write(value):
        raise StorageError("disk full")

    edit = Edit("5", {"name": "Milk"}).propose({"name": "Oat milk"})
    reconcile(edit, write=write, refetch=lambda: {"name": "Milk (stored)"})
    assert edit.state is EditState.ROLLED_BACK
    assert edit.current == {"name": "Milk (stored)"}
    assert edit.error == "disk full"


def test_reconcile_ignores_clean_edit():
    edit = Edit("5", {"name": "Milk"})
    reconcile(edit, write=lambda v: pytest.fail("no write"), refetch=lambda: pytest.fail("no refetch"))
    assert edit.state is EditState.CLEAN


def test_other_errors_propagate():
    def write(value):
        raise ValueError("bad input")

    edit = Edit("5", {"name": "Milk"}).propose({"name": ""})
    with pytest.raises(ValueError):
        reconcile(edit, write=write, refetch=lambda: None)
