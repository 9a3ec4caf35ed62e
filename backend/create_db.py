import logging

from faceenroll.db.session import engine, SessionLocal
from faceenroll.db.base import Base


from faceenroll.db.models.subject import Subject
from faceenroll.db.models.face import Face  # noqa: F401
from faceenroll.db.models.subject_face import SubjectFace  # noqa: F401

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger("create_db")

SAMPLE_SUBJECTS = [
    ("Juan", "Pérez"),
    ("María", "García"),
    ("Carlos", "López"),
    ("Ana", "Martínez"),
    ("Luis", "Rodríguez"),
    ("Carmen", "Fernández"),
    ("José", "González"),
    ("Isabel", "Sánchez"),
    ("Miguel", "Ruiz"),
    ("Laura", "Díaz"),
    ("Antonio", "Moreno"),
    ("Pilar", "Muñoz"),
    ("Francisco", "Álvarez"),
    ("Rosa", "Romero"),
    ("Manuel", "Alonso"),
    ("Teresa", "Gutiérrez"),
    ("David", "Navarro"),
    ("Cristina", "Torres"),
    ("Javier", "Domínguez"),
    ("Mónica", "Vázquez"),
]


def seed_subjects(db) -> int:
    if db.query(Subject).first() is not None:
        return 0
    db.add_all(Subject(first_name=first, last_name=last) for first, last in SAMPLE_SUBJECTS)
    db.commit()
    return len(SAMPLE_SUBJECTS)


if __name__ == "__main__":
    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=engine)

    with SessionLocal() as db:
        added = seed_subjects(db)
    logger.info(f"Done. Seeded {added} sample subject(s).")
