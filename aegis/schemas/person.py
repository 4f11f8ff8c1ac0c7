"""Person entity."""

from pydantic import BaseModel, ConfigDict, Field


class Person(BaseModel):
    """
    A person as seen by callers.

    Wire shape: ``{"id": str, "name": str, "age": int}``.

    Example:
        person = Person(id="AAAAAAAA", name="James", age=30)
        person.model_dump_json()
        # '{"id":"AAAAAAAA","name":"James","age":30}'
    """

    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1, max_length=8)
    name: str = Field(max_length=255)
    age: int = Field(ge=0)

