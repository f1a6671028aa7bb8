from __future__ import annotations

import pytest

from gradedesk.gradebook.state import (
    Exercise,
    GradeEntry,
    Gradebook,
    GradebookState,
    Student,
    initial_state,
    validate_state,
)


def test_initial_state_has_thirteen_students_and_one_exercise() -> None:
    state = initial_state()

    assert [s.id for s in state.students] == [f"student-{i}" for i in range(1, 14)]
    assert state.students[0].name == "Student 1"
    assert len(state.exercises) == 1
    assert state.exercises[0].id == "ex-1"
    assert state.exercises[0].max_score == 10
    assert state.exercises[0].entries == {}


def test_add_exercise_copies_rubric_and_instructions_from_last_exercise() -> None:
    book = Gradebook(initial_state())
    book.update_exercise_field("ex-1", "rubric", "2 points for input validation")
    book.update_exercise_field("ex-1", "custom_instructions", "No break statements")
    book.update_exercise_field("ex-1", "question", "Read a number")
    book.update_entry("ex-1", "student-1", "score", 7)

    added = book.add_exercise()

    first, second = book.state.exercises
    assert second is added
    assert second.name == "Exercise 2"
    assert second.rubric == first.rubric
    assert second.custom_instructions == first.custom_instructions
    assert second.question == ""
    assert second.entries == {}
    assert second.id != first.id


def test_added_ids_are_unique_and_names_follow_count() -> None:
    book = Gradebook(initial_state(2))

    ex_a = book.add_exercise()
    ex_b = book.add_exercise()
    student = book.add_student()

    assert ex_a.id != ex_b.id
    assert [ex.name for ex in book.state.exercises] == ["Exercise 1", "Exercise 2", "Exercise 3"]
    assert student.name == "Student 3"
    assert student.id not in {"student-1", "student-2"}


def test_update_entry_creates_entry_with_default_other_field() -> None:
    book = Gradebook(initial_state())

    book.update_entry("ex-1", "student-2", "feedback", "Nice loop")

    assert book.exercise("ex-1").entries["student-2"] == GradeEntry(score=0, feedback="Nice loop")

    book.update_entry("ex-1", "student-2", "score", 14)
    assert book.exercise("ex-1").entries["student-2"] == GradeEntry(score=14, feedback="Nice loop")


def test_unknown_ids_leave_state_untouched() -> None:
    book = Gradebook(initial_state())
    before = book.snapshot()

    book.update_exercise_field("missing", "rubric", "x")
    book.update_entry("missing", "student-1", "score", 3)
    book.update_student_name("missing", "Nobody")
    book.update_max_score("missing", 20)
    book.set_entry("missing", "student-1", 3, "x")
    book.set_entry("ex-1", "ghost", 4, "x")
    book.update_entry("ex-1", "ghost", "score", 4)
    book.update_entry("ex-1", "ghost", "feedback", "x")

    assert book.state == before
    assert book.exercise("ex-1").entries == {}


def test_update_exercise_field_rejects_unknown_fields() -> None:
    book = Gradebook(initial_state())

    with pytest.raises(ValueError):
        book.update_exercise_field("ex-1", "entries", {})
    with pytest.raises(ValueError):
        book.update_entry("ex-1", "student-1", "grade", 3)  # type: ignore[arg-type]


def test_update_student_name_and_max_score() -> None:
    book = Gradebook(initial_state())

    book.update_student_name("student-3", "Dana")
    book.update_max_score("ex-1", 20)

    assert book.student("student-3").name == "Dana"
    assert book.exercise("ex-1").max_score == 20


def test_entry_for_defaults_without_storing() -> None:
    exercise = Exercise(id="ex-1", name="Exercise 1")

    assert exercise.entry_for("student-1") == GradeEntry(score=0, feedback="")
    assert exercise.entries == {}


def test_next_student_does_not_wrap() -> None:
    book = Gradebook(initial_state(3))

    assert book.next_student_id("student-1") == "student-2"
    assert book.next_student_id("student-3") is None
    assert book.next_student_id("ghost") is None


def test_validate_substitutes_seed_students_when_empty() -> None:
    seed = initial_state()
    raw = {
        "students": [],
        "exercises": [{"id": "ex-7", "name": "Pointers", "max_score": 5, "entries": {"s1": {"score": 4, "feedback": "ok"}}}],
    }

    state = validate_state(raw, seed)

    assert state.students == seed.students
    assert [ex.id for ex in state.exercises] == ["ex-7"]
    assert state.exercises[0].entries["s1"] == GradeEntry(score=4, feedback="ok")


def test_validate_substitutes_seed_exercises_when_malformed() -> None:
    seed = initial_state()
    raw = {"students": [{"id": "s1", "name": "Ada"}], "exercises": [{"name": "no id"}, 42]}

    state = validate_state(raw, seed)

    assert state.students == [Student(id="s1", name="Ada")]
    assert state.exercises == seed.exercises


@pytest.mark.parametrize("raw", [None, "garbage", [], {"students": None}])
def test_validate_falls_back_to_seed_for_non_mappings(raw: object) -> None:
    seed = initial_state()

    assert validate_state(raw, seed) == seed


def test_validate_drops_duplicate_ids_keeping_first() -> None:
    raw = {
        "students": [{"id": "s1", "name": "First"}, {"id": "s1", "name": "Second"}],
        "exercises": [{"id": "ex-1", "name": "A"}, {"id": "ex-1", "name": "B"}],
    }

    state = validate_state(raw)

    assert state.students == [Student(id="s1", name="First")]
    assert [ex.name for ex in state.exercises] == ["A"]


def test_validate_result_does_not_share_seed_objects() -> None:
    seed = initial_state()

    state = validate_state({}, seed)
    state.exercises[0].entries["student-1"] = GradeEntry(score=1)

    assert seed.exercises[0].entries == {}
    assert isinstance(state, GradebookState)
