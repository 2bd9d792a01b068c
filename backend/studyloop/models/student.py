from sqlmodel import SQLModel, Field


class Student(SQLModel, table=True):
    """Roster projection of learners per grade. Maintained by the identity service."""

    __tablename__ = "students"

    id: str = Field(primary_key=True)
    display_name: str
    grade_id: str = Field(index=True)
