import json
from typing import Optional, List
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy import select
from contextlib import asynccontextmanager

from codetrack.config import Config
from codetrack.database.models import (
    Base, Student, PerformanceRecord, GradingRule, Configuration
)
from codetrack.services.seed_configurations import INITIAL_CONFIGS, DEFAULT_GRADING_POINTS
from codetrack.utils.logger import setup_logger

class Database:
    def __init__(self, database_url: str = None):
        self.logger = setup_logger(__name__)
        self.database_url = Config.get_async_database_url(database_url)
        self.engine = None
        self.session_factory = None

    async def initialize(self):
        """Initialize the database connection and create tables"""
        self.logger.info("Initializing database...")

        self.engine = create_async_engine(
            self.database_url,
            echo=Config.DEBUG,
            future=True
        )

        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False
        )

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        self.logger.info("Database initialized successfully")

        await self.initialize_default_data()

    async def initialize_default_data(self):
        """Seed the grading rule and runtime configuration without overwriting existing rows"""
        async with self.transaction() as session:
            result = await session.execute(select(GradingRule.metric))
            existing_metrics = set(result.scalars().all())
            missing = {m: p for m, p in DEFAULT_GRADING_POINTS.items() if m not in existing_metrics}
            for metric, points in missing.items():
                session.add(GradingRule(metric=metric, points=points))
            if missing:
                self.logger.info(f"Seeded {len(missing)} grading rule entries")

            result = await session.execute(select(Configuration.key))
            existing_keys = set(result.scalars().all())
            new_configs = {k: v for k, v in INITIAL_CONFIGS.items() if k not in existing_keys}
            for key, value in new_configs.items():
                session.add(Configuration(key=key, value=json.dumps(value)))
            if new_configs:
                self.logger.info(f"Seeded {len(new_configs)} configuration parameters")

    @asynccontextmanager
    async def get_session(self):
        """Get a database session"""
        async with self.session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    @asynccontextmanager
    async def transaction(self):
        """
        Create a transaction boundary for atomic operations.

        All operations within the context are committed together on success,
        or rolled back together on failure.
        """
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    async def close(self):
        """Close the database connection"""
        if self.engine:
            await self.engine.dispose()
            self.logger.info("Database connection closed")

    # Student operations
    async def create_student(self, student_id: str, name: str, dept_code: str = None,
                             year: int = None, section: str = None) -> Student:
        """Create a student together with an all-zero performance record"""
        async with self.transaction() as session:
            student = Student(
                student_id=student_id,
                name=name,
                dept_code=dept_code,
                year=year,
                section=section,
                score=0
            )
            student.performance = PerformanceRecord(student_id=student_id)
            session.add(student)
        self.logger.info(f"Registered student {student_id}")
        return student

    async def get_student(self, student_id: str) -> Optional[Student]:
        """Get a student by roll number"""
        async with self.get_session() as session:
            return await session.get(Student, student_id)

    async def get_performance(self, student_id: str) -> Optional[PerformanceRecord]:
        """Get a student's performance record"""
        async with self.get_session() as session:
            return await session.get(PerformanceRecord, student_id)

    async def get_all_students(self) -> List[Student]:
        """Get all students ordered by roll number"""
        async with self.get_session() as session:
            result = await session.execute(select(Student).order_by(Student.student_id))
            return list(result.scalars().all())
