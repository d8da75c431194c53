from __future__ import annotations

import pytest

from controller import EditorController
from editor_view import EditorView
from models import FragmentId

from conftest import FakeDecoder, FakeMutator, text_item


ONE = FragmentId(1, 0)
TWO = FragmentId(1, 1)


@pytest.fixture
def view(qapp):
    controller = EditorController(
        decoder=FakeDecoder({b"doc": [[text_item("One", 72, 700), text_item("Two", 72, 650)]]}),
        mutator=FakeMutator(),
    )
    controller.session.load(b"doc")
    view = EditorView(controller)
    view.show_document()
    view.resize(1000, 800)
    view.show()
    view.activateWindow()
    qapp.processEvents()
    yield view
    view.close()
    view.deleteLater()
    qapp.processEvents()


def test_labels_are_created_per_fragment(view):
    assert set(view._labels) == {ONE, TWO}
    assert view._labels[ONE].text() == "One"


def test_switching_editors_keeps_the_new_one_open(view, qapp):
    view._begin_text_edit(ONE)
    qapp.processEvents()

    view._begin_text_edit(TWO)
    for _ in range(3):
        qapp.processEvents()

    session = view._controller.session
    assert view._edit_widget is not None
    assert view._edit_label is view._labels[TWO]
    assert view._edit_widget.text() == "Two"
    assert session.editing == TWO


def test_queued_commit_of_a_closed_editor_is_ignored(view):
    view._begin_text_edit(ONE)
    first = view._edit_widget
    view._begin_text_edit(TWO)
    second = view._edit_widget

    view._commit_if_current(first)

    assert view._edit_widget is second
    assert view._controller.session.editing == TWO


def test_switching_editors_confirms_typed_text(view):
    view._begin_text_edit(ONE)
    view._edit_widget.setText("Uno")

    view._begin_text_edit(TWO)

    assert view._controller.session.registry.get(ONE).current_text == "Uno"
    assert view._labels[ONE].text() == "Uno"


def test_commit_pending_edit_updates_label(view):
    view._begin_text_edit(TWO)
    view._edit_widget.setText("Deux")

    view.commit_pending_edit()

    label = view._labels[TWO]
    assert view._edit_widget is None
    assert view._controller.session.editing is None
    assert view._controller.session.registry.get(TWO).is_dirty
    assert label.text() == "Deux"
    assert not label.isHidden()


def test_cancel_leaves_fragment_unchanged(view):
    view._begin_text_edit(ONE)
    view._edit_widget.setText("discarded")

    view._cancel_text_edit()

    assert view._edit_widget is None
    assert view._controller.session.registry.get(ONE).current_text == "One"
    assert list(view._controller.session.registry.iter_dirty()) == []
