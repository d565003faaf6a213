import pytest
from sqlalchemy.exc import OperationalError

from learnpath.core.exceptions import ContentNotFoundError, NotEnrolledError, ProgressWriteError
from learnpath.crud import user_progress_crud
from learnpath.models import CompletionStatus, TextProgress, VideoProgress, QuizAttempt


def _count(db, model, **filters):
    return db.query(model).filter_by(**filters).count()


def test_recording_a_chapter_twice_is_idempotent(db, seeded, recorder):
    first = recorder.record_chapter_complete(seeded.learner_id, 11)
    second = recorder.record_chapter_complete(seeded.learner_id, 11)

    assert first.success is True
    assert first.already_completed is False
    assert second.success is True
    assert second.already_completed is True
    assert _count(db, VideoProgress, learner_id=seeded.learner_id, chapter_id=11) == 1
    assert user_progress_crud.get_chapter_completion(db, seeded.learner_id, 11, "video") is True


def test_chapter_progress_goes_to_the_table_of_its_kind(db, seeded, recorder):
    recorder.record_chapter_complete(seeded.learner_id, 12)  # text
    recorder.record_chapter_complete(seeded.learner_id, 13)  # other

    assert _count(db, TextProgress, learner_id=seeded.learner_id) == 2
    assert _count(db, VideoProgress, learner_id=seeded.learner_id) == 0


def test_recording_a_chapter_reaggregates_the_course(db, seeded, recorder):
    outcome = recorder.record_chapter_complete(seeded.learner_id, 21)

    assert outcome.course_status.completed_items == 1
    assert outcome.course_status.percentage == 17
    stored = user_progress_crud.get_course_progress(db, seeded.learner_id, seeded.course_id)
    assert stored.completion_percentage == 17
    assert stored.completion_status == CompletionStatus.IN_PROGRESS


def test_example_course_reaches_83_percent(db, seeded, recorder):
    for chapter_id in seeded.chapters_a + [21]:
        recorder.record_chapter_complete(seeded.learner_id, chapter_id)
    recorder.record_quiz_attempt(seeded.learner_id, seeded.quiz_a)

    stored = user_progress_crud.get_course_progress(db, seeded.learner_id, seeded.course_id)
    assert stored.completed_items == 5
    assert stored.total_items == 6
    assert stored.completion_percentage == 83


def test_not_enrolled_learner_is_rejected(seeded, recorder):
    with pytest.raises(NotEnrolledError):
        recorder.record_chapter_complete(seeded.outsider_id, 11)
    with pytest.raises(NotEnrolledError):
        recorder.record_quiz_attempt(seeded.outsider_id, seeded.quiz_a)
    with pytest.raises(NotEnrolledError):
        recorder.record_course_complete(seeded.outsider_id, seeded.course_id)


def test_unknown_chapter_is_content_not_found(seeded, recorder):
    with pytest.raises(ContentNotFoundError):
        recorder.record_chapter_complete(seeded.learner_id, 9999)


def test_failed_chapter_write_reports_failure(monkeypatch, seeded, recorder):
    def failing_upsert(*args, **kwargs):
        raise ProgressWriteError("store unavailable")

    monkeypatch.setattr(user_progress_crud, "upsert_chapter_completion", failing_upsert)
    outcome = recorder.record_chapter_complete(seeded.learner_id, 11)

    assert outcome.success is False
    assert outcome.chapter_id == 11


def _store_down(*args, **kwargs):
    raise OperationalError("SELECT 1", {}, Exception("database is unavailable"))


def test_failed_completion_read_reports_failure(db, monkeypatch, seeded, recorder):
    monkeypatch.setattr(user_progress_crud, "get_chapter_completion", _store_down)
    outcome = recorder.record_chapter_complete(seeded.learner_id, 11)

    assert outcome.success is False
    assert _count(db, VideoProgress, learner_id=seeded.learner_id, chapter_id=11) == 0


def test_failed_reaggregation_keeps_the_stored_chapter(db, monkeypatch, seeded, recorder):
    monkeypatch.setattr(user_progress_crud, "get_attempted_quiz_ids", _store_down)
    outcome = recorder.record_chapter_complete(seeded.learner_id, 11)

    assert outcome.success is True
    assert outcome.course_status is None
    assert _count(db, VideoProgress, learner_id=seeded.learner_id, chapter_id=11, completed=True) == 1


def test_double_quiz_submission_keeps_both_attempts(db, seeded, recorder):
    first = recorder.record_quiz_attempt(seeded.learner_id, seeded.quiz_a, 40.0)
    second = recorder.record_quiz_attempt(seeded.learner_id, seeded.quiz_a, 40.0)

    assert (first.attempt_number, second.attempt_number) == (1, 2)
    assert _count(db, QuizAttempt, learner_id=seeded.learner_id, quiz_id=seeded.quiz_a) == 2
    assert user_progress_crud.get_quiz_attempt_count(db, seeded.learner_id, seeded.quiz_a) == 2


def test_quiz_completion_does_not_depend_on_score(db, seeded, recorder):
    for chapter_id in seeded.chapters_a:
        recorder.record_chapter_complete(seeded.learner_id, chapter_id)
    recorder.record_quiz_attempt(seeded.learner_id, seeded.quiz_a, 0.0)

    stored = user_progress_crud.get_course_progress(db, seeded.learner_id, seeded.course_id)
    assert stored.completed_items == 4


def test_manual_finish_marks_chapters_and_pins_completed(db, seeded, recorder):
    recorder.record_chapter_complete(seeded.learner_id, 11)

    outcome = recorder.record_course_complete(seeded.learner_id, seeded.course_id)

    assert outcome.success is True
    assert outcome.status == CompletionStatus.COMPLETED
    assert outcome.completed_at is not None
    for chapter_id, model in ((11, VideoProgress), (12, TextProgress), (13, TextProgress),
                              (21, TextProgress), (22, VideoProgress)):
        assert _count(db, model, learner_id=seeded.learner_id, chapter_id=chapter_id, completed=True) == 1

    # The quiz was never attempted and no attempt is invented
    assert user_progress_crud.get_quiz_attempt_count(db, seeded.learner_id, seeded.quiz_a) == 0
    stored = user_progress_crud.get_course_progress(db, seeded.learner_id, seeded.course_id)
    assert stored.completion_percentage == 83
    assert stored.completion_status == CompletionStatus.COMPLETED


def test_completion_survives_later_recomputation(db, seeded, recorder):
    finished = recorder.record_course_complete(seeded.learner_id, seeded.course_id)

    recorder.record_chapter_complete(seeded.learner_id, 11)
    recorder.record_quiz_attempt(seeded.learner_id, seeded.quiz_a)

    stored = user_progress_crud.get_course_progress(db, seeded.learner_id, seeded.course_id)
    assert stored.completion_status == CompletionStatus.COMPLETED
    assert stored.completion_percentage == 100
    assert stored.completed_at == finished.completed_at


def test_finishing_twice_keeps_the_first_completed_at(seeded, recorder):
    first = recorder.record_course_complete(seeded.learner_id, seeded.course_id)
    second = recorder.record_course_complete(seeded.learner_id, seeded.course_id)
    assert second.completed_at == first.completed_at
