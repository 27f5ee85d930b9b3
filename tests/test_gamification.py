from datetime import date, datetime, timedelta

import pytest

import gamification
from errors import NotFoundError

MORNING = datetime(2024, 6, 10, 7, 30)


@pytest.mark.parametrize("streak, last, today, expected", [
    (0, None, date(2024, 6, 10), 1),
    (4, datetime(2024, 6, 10, 6, 0), date(2024, 6, 10), 4),
    (4, datetime(2024, 6, 9, 22, 0), date(2024, 6, 10), 5),
    (4, datetime(2024, 6, 7, 22, 0), date(2024, 6, 10), 1),
])
def test_next_streak(streak, last, today, expected):
    assert gamification.next_streak(streak, last, today) == expected


def test_current_streak_is_zero_once_broken(make_user):
    user = make_user(streak_count=6, last_workout_date=datetime(2024, 6, 1, 8, 0))
    assert gamification.current_streak(user, date(2024, 6, 2)) == 6
    assert gamification.current_streak(user, date(2024, 6, 5)) == 0


def test_log_workout_advances_streak_once_per_day(db, make_user, exercise):
    user = make_user()

    first = gamification.log_workout(db, user.id, {"exerciseId": exercise.id}, now=MORNING)
    assert first["streakCount"] == 1
    assert first["workout"]["duration"] == exercise.duration
    assert first["workout"]["completed"] is True

    second = gamification.log_workout(db, user.id, {"exerciseId": exercise.id, "duration": 20},
                                      now=MORNING + timedelta(hours=8))
    assert second["streakCount"] == 1

    third = gamification.log_workout(db, user.id, {"exerciseId": exercise.id}, now=MORNING + timedelta(days=1))
    assert third["streakCount"] == 2

    fourth = gamification.log_workout(db, user.id, {"exerciseId": exercise.id}, now=MORNING + timedelta(days=4))
    assert fourth["streakCount"] == 1

    db.refresh(user)
    db.refresh(exercise)
    assert len(user.workout_history) == 4
    assert exercise.completion_count == 4
    assert user.last_workout_date == MORNING + timedelta(days=4)


def test_log_workout_with_unknown_exercise_writes_nothing(db, make_user):
    user = make_user()
    with pytest.raises(NotFoundError):
        gamification.log_workout(db, user.id, {"exerciseId": 999}, now=MORNING)

    db.refresh(user)
    assert user.workout_history == []
    assert user.streak_count == 0


def test_achievements():
    codes = [a["code"] for a in gamification.unlocked_achievements(total_workouts=12, streak=7)]
    assert codes == ["first_workout", "workouts_10", "streak_7"]
    assert gamification.unlocked_achievements(0, 0) == []


def test_progress_summary_and_calendar(db, make_user, exercise):
    user = make_user()
    for day in range(3):
        gamification.log_workout(db, user.id, {"exerciseId": exercise.id, "duration": 15},
                                 now=MORNING + timedelta(days=day))
    db.refresh(user)
    now = MORNING + timedelta(days=2, hours=1)

    progress = gamification.workout_progress(user, now)
    assert progress["totalWorkouts"] == 3
    assert progress["streakCount"] == 3
    assert len(progress["workoutFrequency"]) == 30
    assert sum(day["count"] for day in progress["workoutFrequency"]) == 3

    summary = gamification.workout_summary(user, now)
    assert summary["totalMinutes"] == 45
    assert summary["favoriteDay"] == "Monday"

    stats = gamification.workout_stats(db, user, 30, now)
    assert stats["byCategory"] == {"Strength": 3}
    assert stats["activeDays"] == 3

    calendar = gamification.workout_calendar(user, date(2024, 6, 11), date(2024, 6, 30))
    assert list(calendar) == ["2024-06-11", "2024-06-12"]
