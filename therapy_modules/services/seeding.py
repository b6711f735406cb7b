"""Seed reference content: the Depression program with PHQ-9 and the Activity Diary."""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from therapy_modules.models.enums import AccessPolicy, ModuleType
from therapy_modules.models.module import Module, Program
from therapy_modules.models.question import Question, ScoreBand

logger = logging.getLogger(__name__)

DEPRESSION_PROGRAM = {
    "title": "Depression",
    "description": "Step-by-step CBT programme for low mood.",
}

PHQ9_MODULE = {
    "title": "PHQ-9",
    "description": "Patient Health Questionnaire-9 (depression severity)",
    "type": ModuleType.QUESTIONNAIRE.value,
    "access_policy": AccessPolicy.ENROLLED.value,
    "disclaimer": (
        "The PHQ-9 is a screening tool and does not replace professional diagnosis. "
        "If you have thoughts of self-harm, seek help immediately."
    ),
}

PHQ9_QUESTIONS = [
    "Little interest or pleasure in doing things",
    "Feeling down, depressed, or hopeless",
    "Trouble falling or staying asleep, or sleeping too much",
    "Feeling tired or having little energy",
    "Poor appetite or overeating",
    "Feeling bad about yourself, or that you are a failure or have let yourself or your family down",
    "Trouble concentrating on things, such as reading the newspaper or watching television",
    "Moving or speaking so slowly that other people could have noticed? Or the opposite, being so "
    "fidgety or restless that you have been moving around a lot more than usual",
    "Thoughts that you would be better off dead, or of hurting yourself in some way",
]

FREQUENCY_CHOICES = [
    {"text": "Not at all", "score": 0},
    {"text": "Several days", "score": 1},
    {"text": "More than half the days", "score": 2},
    {"text": "Nearly every day", "score": 3},
]

PHQ9_BANDS = [
    (0, 4, "Minimal", "No or minimal depression"),
    (5, 9, "Mild", "Watchful waiting; repeat soon"),
    (10, 14, "Moderate", "Consider counselling or CBT"),
    (15, 19, "Moderately severe", "Active treatment recommended"),
    (20, 27, "Severe", "Immediate intensive treatment"),
]

ACTIVITY_DIARY_MODULE = {
    "title": "Activity Diary",
    "description": "Track your activities through the day alongside mood, achievement, closeness and enjoyment.",
    "type": ModuleType.ACTIVITY_DIARY.value,
    "access_policy": AccessPolicy.ASSIGNED.value,
    "disclaimer": (
        "This diary is for self-monitoring and does not replace professional care. "
        "If you feel unsafe, seek immediate help."
    ),
}


async def _get_or_create_program(db: AsyncSession, data: dict) -> Program:
    result = await db.execute(select(Program).where(Program.title == data["title"]))
    program = result.scalar_one_or_none()
    if program is None:
        program = Program(**data)
        db.add(program)
        await db.flush()
    return program


async def _get_or_create_module(db: AsyncSession, program: Program, data: dict) -> tuple[Module, bool]:
    result = await db.execute(
        select(Module).where(Module.program_id == program.id, Module.title == data["title"])
    )
    module = result.scalar_one_or_none()
    if module is not None:
        return module, False
    module = Module(program_id=program.id, **data)
    db.add(module)
    await db.flush()
    return module, True


async def seed_content(db: AsyncSession) -> None:
    """Insert reference programs, modules, questions and bands if missing."""
    program = await _get_or_create_program(db, DEPRESSION_PROGRAM)

    phq9, created = await _get_or_create_module(db, program, PHQ9_MODULE)
    if created:
        for order, text in enumerate(PHQ9_QUESTIONS, start=1):
            db.add(Question(module_id=phq9.id, order=order, text=text, choices=list(FREQUENCY_CHOICES)))
        for low, high, label, interpretation in PHQ9_BANDS:
            db.add(ScoreBand(module_id=phq9.id, min=low, max=high, label=label, interpretation=interpretation))
        logger.info("Seeded PHQ-9 module %s", phq9.id)

    diary, created = await _get_or_create_module(db, program, ACTIVITY_DIARY_MODULE)
    if created:
        logger.info("Seeded Activity Diary module %s", diary.id)

    await db.commit()
