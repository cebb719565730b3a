"""Sample data for demos and local runs (enabled with SEED_DEMO_DATA=1)."""
from .models import Exercise, Patient, Physiotherapist
from .store import AppointmentStore

DEMO_EXERCISES = [
    Exercise(id=1, name="Single Leg Balance", sets=3, reps_per_set=1, duration_minutes=5),
    Exercise(id=2, name="Calf Stretch", sets=3, reps_per_set=1, duration_minutes=5),
    Exercise(id=3, name="Resistance Band Ankle Movements", sets=3, reps_per_set=15, duration_minutes=10),
    Exercise(id=4, name="Ankle Alphabet", sets=2, reps_per_set=1, duration_minutes=5),
    Exercise(id=5, name="Heel Raises", sets=3, reps_per_set=15, duration_minutes=5),
]


def seed_demo_data(store: AppointmentStore) -> None:
    store.add_physiotherapist(Physiotherapist(
        id=1, name="Dr. Sarah Mitchell", email="sarah.mitchell@example.com",
        mobile="555-0101", experience_years=8,
    ))
    store.add_physiotherapist(Physiotherapist(
        id=2, name="Dr. James Rodriguez", email="james.rodriguez@example.com",
        mobile="555-0102", experience_years=12,
    ))
    store.add_patient(Patient(
        id=1, name="Alex Johnson", email="alex.johnson@example.com",
        mobile="555-0201", current_physiotherapist_id=1,
    ))
    store.add_patient(Patient(
        id=2, name="Priya Sharma", email="priya.sharma@example.com",
        mobile="555-0202", current_physiotherapist_id=2,
    ))
    store.assign_exercises(1, DEMO_EXERCISES[:3])
    store.assign_exercises(2, DEMO_EXERCISES[2:])
