# tests/test_vocabulary.py

from __future__ import annotations

from pathlib import Path

import pytest

from opsdesk.core.errors import PermissionDenied
from opsdesk.tasks.task_models import TaskStatus
from opsdesk.workspace.vocabulary import VocabularyKind, VocabularyStore

from .fakes import make_new_task


def _store(tmp_path: Path) -> VocabularyStore:
    return VocabularyStore(
        tmp_path / "vocab.sqlite3",
        default_task_types=["No Internet", "Speed Issue"],
        default_areas=["Rampura", "Banasree", "Bhola"],
    )


def test_defaults_are_seeded_per_workspace(tmp_path: Path) -> None:
    store = _store(tmp_path)
    assert store.list_items("alpha", VocabularyKind.AREA) == ["Rampura", "Banasree", "Bhola"]
    assert store.list_items("alpha", VocabularyKind.TASK_TYPE) == ["No Internet", "Speed Issue"]

    store.add_item("alpha", VocabularyKind.AREA, "Mirpur")
    assert store.list_items("beta", VocabularyKind.AREA) == ["Rampura", "Banasree", "Bhola"]


def test_add_trims_and_ignores_blank_and_duplicates(tmp_path: Path) -> None:
    store = _store(tmp_path)
    assert store.add_item("alpha", VocabularyKind.AREA, "  Mirpur ")[-1] == "Mirpur"
    assert store.add_item("alpha", VocabularyKind.AREA, "Mirpur").count("Mirpur") == 1
    assert store.add_item("alpha", VocabularyKind.AREA, "   ") == ["Rampura", "Banasree", "Bhola", "Mirpur"]


def test_remove_keeps_at_least_one_item(tmp_path: Path) -> None:
    store = _store(tmp_path)
    assert store.remove_item("alpha", VocabularyKind.TASK_TYPE, "No Internet") == ["Speed Issue"]
    with pytest.raises(ValueError, match="at least one"):
        store.remove_item("alpha", VocabularyKind.TASK_TYPE, "Speed Issue")

    # Emptied-then-edited lists are not re-seeded on a fresh store instance.
    again = _store(tmp_path)
    assert again.list_items("alpha", VocabularyKind.TASK_TYPE) == ["Speed Issue"]


def test_workspace_settings_edits_are_admin_only(state, admin, sign_up) -> None:
    assert "Bhola" in state.workspace.items(VocabularyKind.AREA)
    state.workspace.add(VocabularyKind.AREA, "Mirpur")

    sign_up("worker", "alpha")
    assert "Mirpur" in state.workspace.items(VocabularyKind.AREA)
    with pytest.raises(PermissionDenied):
        state.workspace.add(VocabularyKind.AREA, "Uttara")
    with pytest.raises(PermissionDenied):
        state.workspace.remove(VocabularyKind.AREA, "Mirpur")


def test_removed_item_does_not_touch_existing_tasks(state, admin) -> None:
    task = state.registry.add_task(make_new_task(area="Bhola", status=TaskStatus.PENDING))
    state.workspace.remove(VocabularyKind.AREA, "Bhola")

    assert "Bhola" not in state.workspace.items(VocabularyKind.AREA)
    assert state.registry.list()[0].area == task.area == "Bhola"
